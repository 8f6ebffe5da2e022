from fastapi import HTTPException, Request
from typing import Dict, List
import logging
import time

logger = logging.getLogger(__name__)


class RateLimiter:
    def __init__(self):
        self.requests: Dict[str, List[float]] = {}

    async def check_rate_limit(self, request: Request, max_requests: int = 60, window: int = 60):
        """Check rate limit for endpoint"""
        client_ip = request.client.host if request.client else "unknown"
        endpoint = str(request.url.path)
        key = f"{client_ip}:{endpoint}"

        now = time.time()

        # Clean old requests
        self.requests[key] = [req_time for req_time in self.requests.get(key, []) if now - req_time < window]

        if len(self.requests[key]) >= max_requests:
            logger.warning(f"Rate limit exceeded for {key}")
            raise HTTPException(
                status_code=429,
                detail={"error": "Too Many Requests", "message": "Rate limit exceeded"},
                headers={"Retry-After": str(window)}
            )

        self.requests[key].append(now)

    def reset(self):
        self.requests.clear()


rate_limiter = RateLimiter()
