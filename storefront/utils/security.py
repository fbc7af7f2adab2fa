from fastapi import Request, HTTPException, Depends
from typing import Dict, Any

def bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip()
    return ""

def get_current_user(request: Request) -> Dict[str, Any]:
    # API publique: uniquement le Bearer (pas de cookie de session)
    if not request.headers.get("Authorization"):
        raise HTTPException(status_code=401, detail="En-tête Authorization requis")

    token = bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Échec de l'authentification de l'utilisateur")

    try:
        # Délégué au service Auth
        from storefront.auth.service import get_user_from_token as _svc_get_user_from_token
        user = _svc_get_user_from_token(token)
        if not user.get("id"):
            raise HTTPException(status_code=401, detail="Échec de l'authentification de l'utilisateur")
        return user
    except HTTPException:
        raise
    except Exception:
        raise HTTPException(status_code=401, detail="Échec de l'authentification de l'utilisateur")

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user
