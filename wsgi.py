# ==============================================================================
# PUNTO DE ENTRADA WSGI
# ==============================================================================
# gunicorn wsgi:app
# ==============================================================================

from dermo_admin.main import create_app

app = create_app()

if __name__ == '__main__':
    app.run(debug=False)
