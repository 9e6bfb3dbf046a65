"""
Limitacion de tasa de peticiones (rate limiting) con SlowAPI.

Hay DOS mecanismos de limite en E-Bandeja, con propositos distintos:

1. **Intentos de login** (services/auth.py): cuenta solo los intentos
   FALLIDOS por IP y bloquea 15 minutos al llegar a 5. SlowAPI no sirve
   para esto porque cuenta todas las peticiones, exitosas o no.

2. **Subidas y firmas** (este modulo): limita cuantas peticiones de subida
   puede hacer una IP por minuto, exitosas o no, para que nadie llene el
   bucket a fuerza de peticiones. Aqui SlowAPI encaja perfecto.

get_remote_address tambien es la funcion que usamos para identificar al
cliente en el limite de login (ver deps.py), asi ambos mecanismos usan la
misma nocion de "IP del cliente". Detras de un proxy, uvicorn debe correr
con --proxy-headers para que esa IP sea la real y no la del proxy.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Contadores en memoria; con varias instancias se usaria
#   Limiter(key_func=get_remote_address, storage_uri="redis://...")
limiter = Limiter(key_func=get_remote_address)
