# storefront/utils/retry.py
from tenacity import (
    Retrying,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
import redis

from storefront.domain.errors import OrderNumberCollision
from storefront.utils.settings import ORDER_NUMBER_RETRIES


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
    )


def order_number_retrying():
    #kolizja numeru = cala transakcja od nowa, bez czekania
    return Retrying(
        reraise=True,
        stop=stop_after_attempt(ORDER_NUMBER_RETRIES),
        retry=retry_if_exception_type(OrderNumberCollision),
    )
