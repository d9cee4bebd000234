from posboard import create_app

app = create_app()
