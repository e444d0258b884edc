"""Local development server.

Schema changes go through migrations (`flask db upgrade`); seed plans with
`flask seed-plans`.
"""

import os

from wsgi import app


if __name__ == '__main__':
    host = os.environ.get('HOST', '0.0.0.0')
    port = int(os.environ.get('PORT', 5000))
    app.run(host=host, port=port)
