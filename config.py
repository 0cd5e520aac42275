#!/usr/bin/env python3
"""
Runtime configuration for the GPT Cells backend.
Values come from the environment (or a local .env file) once at import.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# MongoDB connection
MONGODB_URI = os.getenv('MONGODB_URI', 'mongodb://localhost:27017/')
MONGODB_DB_NAME = os.getenv('MONGODB_DB_NAME', 'gpt_cells')

# Server-to-server API key (X-API-Key header)
API_KEY = os.getenv('API_KEY')

# Identity provider (Firebase Auth / Google Identity Toolkit)
FIREBASE_PROJECT_ID = os.getenv('FIREBASE_PROJECT_ID', 'cellulai')
FIREBASE_WEB_API_KEY = os.getenv('FIREBASE_WEB_API_KEY')
FIREBASE_JWKS_URL = "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com"
FIREBASE_ISSUER = f"https://securetoken.google.com/{FIREBASE_PROJECT_ID}"
IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1"

# Generation providers
OPENROUTER_BASE_URL = os.getenv('OPENROUTER_BASE_URL', 'https://openrouter.ai/api/v1')
FAL_AI_BASE_URL = os.getenv('FAL_AI_BASE_URL', 'https://fal.run')

# Used only when the admin collection holds no enabled key for a provider
OPENROUTER_API_KEY = os.getenv('OPENROUTER_API_KEY')
FAL_AI_API_KEY = os.getenv('FAL_AI_API_KEY')

APP_ORIGIN = os.getenv('APP_ORIGIN', 'http://localhost:3000')
APP_TITLE = 'GPT Cells App'

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv('CORS_ORIGINS', 'http://localhost:3000').split(',')
    if origin.strip()
]

# Provider key cache lifetime and outbound request timeout, in seconds
CONFIG_CACHE_SECONDS = float(os.getenv('CONFIG_CACHE_SECONDS', '300'))
PROVIDER_TIMEOUT_SECONDS = float(os.getenv('PROVIDER_TIMEOUT_SECONDS', '120'))

PORT = int(os.getenv('PORT', '3000'))

# Where the generation CLI finds this service
GPT_CELLS_SERVER_URL = os.getenv('GPT_CELLS_SERVER_URL', f'http://localhost:{PORT}')
