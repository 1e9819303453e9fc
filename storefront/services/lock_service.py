import uuid

import redis

from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL, CHECKOUT_LOCK_TTL_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

#LUA porownaj i usun, atomicity
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis wykonuje skrypt lua atomowo, nie mozna wcisnac sie miedzy GET a DEL
#wiec cudzy lock (po wygasnieciu ttl i ponownym zalozeniu) nie zostanie usuniety


class LockService:
    """
    -blokada checkoutu koszyka (podwojne klikniecie = jedno zamowienie)
    -zwalnianie locka tylko przez wlasciciela tokenu
    -stan magazynu NIE jest tu blokowany, to robi warunkowy UPDATE w bazie
    """

    def __init__(self, url: str | None = None):
        self.redis = redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def new_token() -> str:
        return uuid.uuid4().hex

    @redis_retry()
    def acquire_checkout_lock(self, cart_id: int, token: str, ttl: int = CHECKOUT_LOCK_TTL_SECONDS) -> bool:
        key = f"cart:{cart_id}:checkout"
        logger.info(f"Acquire lock {key}")
        #SET cart:1:checkout <token> NX EX 30
        return bool(self.redis.set(name=key, value=token, nx=True, ex=ttl))

    @redis_retry()
    def release_checkout_lock(self, cart_id: int, token: str) -> bool:
        key = f"cart:{cart_id}:checkout"
        logger.info(f"Release lock {key}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)
