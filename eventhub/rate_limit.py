from slowapi import Limiter
from slowapi.util import get_remote_address

# Shared by every router so limits are counted per client across the app
limiter = Limiter(key_func=get_remote_address)
