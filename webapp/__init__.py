"""
Flask web application for Aptitude.
"""
