from fastapi import APIRouter, Depends, Request, status

from app.api.deps import get_webhook_router, verify_webhook_token
from app.core.logging_setup import logger
from app.services.webhook import WebhookEventRouter

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/asaas", status_code=status.HTTP_200_OK, dependencies=[Depends(verify_webhook_token)])
async def asaas_webhook(
    request: Request,
    event_router: WebhookEventRouter = Depends(get_webhook_router),
) -> dict:
    """Recebe eventos do gateway.

    Sempre responde 200 (exceto token inválido) para o gateway não reenviar o
    evento indefinidamente; falhas de processamento ficam apenas no log.
    """
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Webhook com corpo inválido ignorado")
        return {"ok": True, "processed": False}

    result = event_router.process(payload if isinstance(payload, dict) else {})
    if not result.success:
        logger.warning("Webhook %s não processado: %s", payload.get("event") if isinstance(payload, dict) else None, result.message)
    return {"ok": True, "processed": result.success, "result": result.to_dict()}
