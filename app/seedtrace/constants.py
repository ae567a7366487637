"""
Central constants for the SeedTrace application.
"""
from __future__ import annotations

# Product review workflow
PRODUCT_STATUS_PENDING = "pending"
PRODUCT_STATUS_APPROVED = "approved"
PRODUCT_STATUS_REJECTED = "rejected"
PRODUCT_STATUSES = (PRODUCT_STATUS_PENDING, PRODUCT_STATUS_APPROVED, PRODUCT_STATUS_REJECTED)

# Operators may only edit their own submissions while in these states
OPERATOR_EDITABLE_STATUSES = frozenset({PRODUCT_STATUS_PENDING, PRODUCT_STATUS_REJECTED})

# Brochure uploads
BROCHURE_EXTENSIONS = frozenset({".pdf", ".doc", ".docx", ".jpg", ".jpeg", ".png"})
BROCHURE_MAX_BYTES = 10 * 1024 * 1024

# Permission keys per seeded role
ADMIN_PERMISSIONS = (
    ("admin.view", "Admin: view shell"),
    ("users.manage", "Users: create and list accounts"),
    ("products.view", "Products: view own"),
    ("products.view_all", "Products: view all"),
    ("products.create", "Products: submit"),
    ("products.edit", "Products: edit own"),
    ("products.edit_any", "Products: edit any"),
    ("products.approve", "Products: approve/reject"),
    ("products.delete", "Products: delete"),
    ("products.import", "Products: import CSV/Excel"),
    ("products.export", "Products: export Excel"),
    ("crops.view", "Crops: view"),
    ("crops.manage", "Crops: manage crops, varieties and URLs"),
)
OPERATOR_PERMISSIONS = (
    ("products.view", "Products: view own"),
    ("products.create", "Products: submit"),
    ("products.edit", "Products: edit own"),
    ("crops.view", "Crops: view"),
)

# Crop -> market (variety) codes from the company's label register
CROP_MARKET_CODES: dict[str, list[str]] = {
    "Bajra": ["GOLD-28", "GOLD-27", "GOLD-29"],
    "Bhendi": ["GOLD-207", "GOLD-201"],
    "Bittergourd": ["GOLD-900 SANIKA", "GOLD-911 SOMMYA", "GOLD-903"],
    "Bottlegourd": ["GOLD-707 KALYANI"],
    "Chillies": ["GOLD-504 V-SHIELD", "GOLD-507 VIRAGNI", "GOLD-505 TEJAGNI"],
    "Clusterbean": ["GOLD-601", "GOLD-602"],
    "Coriander": ["SUVASINI", "GOLD-225"],
    "Cotton": [
        "GOLD-81 NAMASKAR",
        "GBCH-85 BG II",
        "GBCH-8888 BG II",
        "GBCH-185 BG II",
        "GBCH-9999 (KARTIK)",
        "GBCH-95 BG II ASHOKA",
        "GBCH-90 KAVITA BG II",
        "GBCH-1801 BG II",
    ],
    "Cowpea": ["GOLD-309"],
    "Cucumber": ["GOLD-403"],
    "Gram": ["GOLD-72", "GOLD-75"],
    "Green Pea": ["GOLD-10"],
    "Jowar": ["GOLD-45", "GOLD-54", "GOLD-25 SHEETAL", "GGFSH-103 CHERI GOLD"],
    "Maize": [
        "GOLD-1166",
        "GOLD-1144 ANKUSH",
        "GOLD-1143 TUSKER",
        "GOLD-1152 UNIVERSAL",
        "GOLD-1154 BALIRAJA",
        "GOLD-1121 PANTHER",
        "GOLD-1155 SHUBHRA",
    ],
    "Moong": ["GOLD-9 SHANESHWAR", "GOLD-50 VISHNU", "GOLD-60", "GOLD-39"],
    "Muskmelon": ["GOLD-414"],
    "Mustard": ["GOLD-358", "GOLD-359"],
    "Onion": ["GOLD-853", "GOLD-877"],
    "Paddy": [
        "GOLD-88 SHRIRAM",
        "GOLD-78",
        "GOLD-99 SUPER MOHINI",
        "GOLD-111 ANNAPURNA",
        "GOLD-444 CHAMATKAR",
        "GOLD-333 BHEEM",
        "GOLD-77 MUKTA GOLD",
    ],
    "Radish": ["GOLD-60 RAJ", "GOLD-20 PRATHAM"],
    "Ridgegourd": ["GOLD-VISHWAS", "GOLD-905 ASMITA"],
    "Sesame": ["GOLD-801 SANKRANTI"],
    "Soyabean": [
        "JS-335", "JS-9305", "GOLD-3344", "GOLD-309", "KDS-726", "KDS-753",
        "G-4182", "G-4183", "G-4184", "G-4186", "G-4185", "G-4187", "G-4188",
        "G-4189", "G-4190", "G-4135", "G-4145", "G-4155", "G-4126", "G-4105",
        "G-4153", "GGSV-193", "GOLD-301",
    ],
    "Spinach": ["GOLD-243"],
    "Sunflower": ["GOLD-7 SUPERSUN"],
    "Sweet Corn": ["GOLD-1000"],
    "Tur": ["GOLD-100", "GOLD-135", "GOLD-131", "BDN-711"],
    "Udid": ["GOLD-22", "TAU-1"],
    "Watermelon": ["GOLD-441 KING XL"],
    "Wheat": ["GOLD-21", "GOLD-23", "GOLD-71 BHANUDAS", "GOLD-29"],
}
