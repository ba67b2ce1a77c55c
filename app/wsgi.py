from app.proofwall import create_app

app = create_app()
