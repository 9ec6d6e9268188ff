"""Django project package for the hospital back-office API."""
