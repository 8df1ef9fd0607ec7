from healthlog import create_app

app = create_app()
