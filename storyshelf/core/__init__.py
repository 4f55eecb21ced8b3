"""Configuration, local storage and the application context"""
