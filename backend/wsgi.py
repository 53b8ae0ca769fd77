from techstore import create_app

app = create_app()
