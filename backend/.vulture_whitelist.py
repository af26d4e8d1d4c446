from backend.src.main import health_check, recovery, run
from backend.src.nodebootstrap.ca.keystore import KeyStore
from backend.src.nodebootstrap.identity.base import IdentityResolver
from backend.src.nodebootstrap.metrics import keystore_authorities_gauge
from backend.src.shared.config import Settings
from backend.src.shared.tls import TLSConfig

# Pydantic Settings
Settings.model_config
Settings.APP_ENV
Settings.SERVER_CERTIFICATE_PATH
Settings.SERVER_KEY_PATH
Settings.AWS_REGION

# Keystore lookup API used by callers outside this package
KeyStore.find_keypair
KeyStore.__iter__

# Protocol method
IdentityResolver.resolve

# uvicorn hook
TLSConfig.load

# Observable gauge is read through its callback
keystore_authorities_gauge

# FastAPI
health_check
recovery

# Console script entry point
run
