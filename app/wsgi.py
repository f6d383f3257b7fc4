from app.buildboard import create_app

app = create_app()
