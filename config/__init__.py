"""
Configuration, settings and database modules for the Aptitude web app.
"""
