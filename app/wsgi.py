from app.lms import create_app

app = create_app()
