"""
FHIR client configuration

Settings read from the environment, with local defaults.
"""

import os

# FHIR server base URL used by get_fhir_client()
FHIR_SERVER_URL = os.environ.get("FHIR_SERVER_URL", "http://localhost:8080/fhir")

# requests timeout in seconds
FHIR_REQUEST_TIMEOUT = float(os.environ.get("FHIR_REQUEST_TIMEOUT", "30"))

# Only STU3 servers are accepted
SUPPORTED_MAJOR_VERSION = "3"
