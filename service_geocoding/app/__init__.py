"""
Geocoding service for Brazilian postal codes.
"""
