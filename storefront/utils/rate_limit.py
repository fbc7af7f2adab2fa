from fastapi import Request, Response, HTTPException
import os
import time
import hashlib

def optional_rate_limit(times: int, seconds: int):
    async def _dep(request: Request):
        def _user_key_from_request(req: Request) -> str:
            # Priorité: Bearer (hashé) puis IP
            auth_header = req.headers.get("Authorization", "")
            path = req.url.path
            if auth_header:
                h = hashlib.sha256(auth_header.encode("utf-8")).hexdigest()[:16]
                return f"user:{h}:{path}"
            ip = req.client.host if req.client else "local"
            return f"ip:{ip}:{path}"

        # Forcer le fallback mémoire en DEV si demandé
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            now = time.time()
            key = _user_key_from_request(request)
            # store: {clé: (fenêtre en secondes, horodatages)}
            store = getattr(request.app.state, "_rl_store", {})
            for k in [k for k, (window, ts) in store.items() if not ts or now - ts[-1] >= window]:
                del store[k]
            hits = [t for t in store.get(key, (seconds, []))[1] if now - t < seconds]
            if len(hits) >= times:
                raise HTTPException(status_code=429, detail="Too Many Requests")
            hits.append(now)
            store[key] = (seconds, hits)
            request.app.state._rl_store = store
            return

        # Respecter le flag global
        if getattr(request.app.state, "rate_limit_enabled", None) is False:
            return

        # Utiliser fastapi-limiter si dispo
        try:
            from fastapi_limiter.depends import RateLimiter
            async def _identifier(req: Request) -> str:
                return _user_key_from_request(req)
            return await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, Response())
        except HTTPException:
            raise
        except Exception:
            # Si fastapi-limiter échoue (ex: Redis indisponible), pas de 429 en prod
            return
    return _dep
