"""
WSGI config for the payroll_portal project.

It exposes the WSGI callable as a module-level variable named ``application``.
"""

import os

from django.core.wsgi import get_wsgi_application

# Default to the hardened production settings. Developers running local WSGI servers can
# override this by exporting DJANGO_SETTINGS_MODULE=payroll_portal.settings.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "payroll_portal.settings.production")

application = get_wsgi_application()
