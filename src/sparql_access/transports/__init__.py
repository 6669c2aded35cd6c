# SPARQL Endpoint Access Layer
# File: transports/__init__.py
# Version: v1
