from app.seedtrace import create_app

app = create_app()
