"""
Modulo de autenticacion: sesiones en memoria y limite de intentos de login.

E-Bandeja no tiene usuarios: hay UNA contrasena compartida. Quien la conoce
recibe una sesion (un token aleatorio guardado en una cookie http-only) y
puede usar la bandeja durante 8 horas desde su ultimo acceso.

Estado que mantiene este modulo
-------------------------------
1. **Sesiones:** diccionario token -> Session(expires_at).
   - Se crea una al hacer login correcto.
   - Cada acceso valido extiende su expiracion (TTL deslizante).
   - Se borra al hacer logout, o "perezosamente" cuando expira: antes de
     cada verificacion recorremos el diccionario y eliminamos las vencidas.
     Es O(n) sobre las sesiones vivas, aceptable para una sola instancia.

2. **Intentos fallidos por IP:** diccionario ip -> FailedLoginWindow.
   - El primer fallo abre una ventana de 15 minutos con count=1.
   - Cada fallo dentro de la ventana incrementa count.
   - Con 5 fallos dentro de la ventana, la IP queda bloqueada (HTTP 429)
     hasta que la ventana termine.
   - Un login correcto borra el contador de esa IP.

Todo vive en memoria del proceso: reiniciar el servidor invalida todas las
sesiones y reinicia los contadores. Es un compromiso aceptado para un
despliegue de una sola instancia.

Patron de diseno: Inyeccion de dependencias
-------------------------------------------
En vez de diccionarios globales, el estado vive en un objeto AuthStore que
main.py crea y guarda en app.state. Los endpoints lo reciben via Depends().
Ademas el reloj (`clock`) y el generador de tokens (`token_factory`) se
pasan por constructor, lo que permite a los tests "viajar en el tiempo" sin
esperar 8 horas reales.
"""

# hmac.compare_digest compara dos secuencias de bytes en tiempo constante:
# tarda lo mismo sin importar en que posicion difieren. Una comparacion
# normal (==) se detiene en el primer byte distinto, y midiendo tiempos de
# respuesta un atacante podria adivinar la contrasena caracter por caracter.
import hmac

# math.ceil para redondear hacia arriba los segundos de Retry-After
import math

# secrets genera numeros aleatorios criptograficamente seguros.
# secrets.token_hex(32) = 32 bytes aleatorios = 64 caracteres hexadecimales.
import secrets

# time.time() retorna los segundos desde la epoca Unix como float
import time

from dataclasses import dataclass
from typing import Callable

import structlog

from ebandeja.config import settings
from ebandeja.errors import RateLimitedError, UnauthenticatedError

logger = structlog.get_logger(__name__)


@dataclass
class Session:
    """Sesion activa. Es valida mientras `expires_at` este en el futuro."""

    token: str
    expires_at: float


@dataclass
class FailedLoginWindow:
    """Conteo de intentos fallidos de una IP dentro de la ventana actual."""

    ip: str
    count: int
    window_started_at: float


def generate_token() -> str:
    return secrets.token_hex(32)


class AuthStore:
    """
    Guarda sesiones e intentos fallidos, y aplica las reglas de login.

    Atributos:
        sessions (dict[str, Session]): Sesiones vivas, indexadas por token.
        failed_logins (dict[str, FailedLoginWindow]): Ventanas de intentos
            fallidos, indexadas por IP del cliente.
    """

    def __init__(
        self,
        password: str,
        session_ttl: float = settings.SESSION_TTL_SECONDS,
        login_window: float = settings.LOGIN_WINDOW_SECONDS,
        max_attempts: int = settings.MAX_LOGIN_ATTEMPTS,
        clock: Callable[[], float] = time.time,
        token_factory: Callable[[], str] = generate_token,
    ):
        self._password = password
        self.session_ttl = session_ttl
        self.login_window = login_window
        self.max_attempts = max_attempts
        self._clock = clock
        self._token_factory = token_factory
        self.sessions: dict[str, Session] = {}
        self.failed_logins: dict[str, FailedLoginWindow] = {}

    # ---------- Sesiones ----------

    def purge_expired_sessions(self) -> None:
        """Barrido perezoso: elimina las sesiones cuya expiracion ya paso."""
        now = self._clock()
        # Copiamos los items con list() porque no se puede borrar de un
        # diccionario mientras se itera sobre el.
        for token, session in list(self.sessions.items()):
            if session.expires_at <= now:
                del self.sessions[token]

    def is_authenticated(self, token: str | None) -> bool:
        """
        True si `token` corresponde a una sesion viva. Extiende su TTL.

        Nunca lanza excepciones: un token ausente, vacio o desconocido
        simplemente significa "no autenticado".
        """
        self.purge_expired_sessions()

        if not token:
            return False

        session = self.sessions.get(token)
        if session is None:
            return False

        # TTL deslizante: cada acceso valido vuelve a contar desde ahora
        session.expires_at = self._clock() + self.session_ttl
        return True

    def create_session(self) -> str:
        token = self._token_factory()
        self.sessions[token] = Session(token=token, expires_at=self._clock() + self.session_ttl)
        return token

    def destroy_session(self, token: str | None) -> None:
        # pop con default no falla si el token no existe (logout idempotente)
        if token:
            self.sessions.pop(token, None)

    # ---------- Intentos fallidos ----------

    def is_rate_limited(self, ip: str) -> bool:
        attempt = self.failed_logins.get(ip)
        if attempt is None:
            return False

        # Si la ventana ya vencio, olvidamos el historial de esa IP
        if self._clock() - attempt.window_started_at >= self.login_window:
            del self.failed_logins[ip]
            return False

        return attempt.count >= self.max_attempts

    def register_failed_attempt(self, ip: str) -> None:
        now = self._clock()
        attempt = self.failed_logins.get(ip)

        if attempt is None or now - attempt.window_started_at >= self.login_window:
            self.failed_logins[ip] = FailedLoginWindow(ip=ip, count=1, window_started_at=now)
            return

        attempt.count += 1

    def clear_failed_attempts(self, ip: str) -> None:
        self.failed_logins.pop(ip, None)

    def retry_after_seconds(self, ip: str) -> int:
        """Segundos que faltan para que termine la ventana (minimo 1)."""
        attempt = self.failed_logins.get(ip)
        if attempt is None:
            return 0

        remaining = self.login_window - (self._clock() - attempt.window_started_at)
        return max(1, math.ceil(remaining))

    # ---------- Login ----------

    def check_password(self, candidate: str) -> bool:
        # Una contrasena configurada vacia nunca autentica a nadie
        if not self._password:
            return False
        return hmac.compare_digest(candidate.encode("utf-8"), self._password.encode("utf-8"))

    def login(self, ip: str, candidate: str) -> str:
        """
        Valida la contrasena y retorna un token de sesion nuevo.

        Raises:
            RateLimitedError: Si la IP agoto sus intentos en la ventana actual.
            UnauthenticatedError: Si la contrasena es incorrecta.
        """
        if self.is_rate_limited(ip):
            retry_after = self.retry_after_seconds(ip)
            logger.warning("login_rate_limited", ip=ip, retry_after=retry_after)
            raise RateLimitedError(retry_after=retry_after)

        if not self.check_password(candidate):
            self.register_failed_attempt(ip)
            logger.info("login_failed", ip=ip, attempts=self.failed_logins[ip].count)
            raise UnauthenticatedError("Contrasena incorrecta")

        self.clear_failed_attempts(ip)
        token = self.create_session()
        logger.info("login_succeeded", ip=ip)
        return token
