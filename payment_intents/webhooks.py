import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response
from fastapi.concurrency import run_in_threadpool

from payment_intents.dependencies import get_lifecycle_manager, get_signature_verifier
from payment_intents.exceptions import ReconciliationSkip, VerificationError
from payment_intents.lifecycle import LifecycleManager
from payment_intents.signature import SignatureVerifier

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    verifier: SignatureVerifier = Depends(get_signature_verifier),
    manager: LifecycleManager = Depends(get_lifecycle_manager),
):
    payload = await request.body()

    try:
        event = verifier.verify(payload, stripe_signature)
    except VerificationError as exc:
        logger.warning("Rejected webhook delivery: %s", exc)
        # One generic detail for every verification failure
        raise HTTPException(status_code=400, detail="Invalid webhook request")
    except ReconciliationSkip as exc:
        logger.error("Signed webhook delivery could not be parsed: %s", exc)
        return Response(status_code=200)

    try:
        state = await run_in_threadpool(manager.reconcile, event)
    except ReconciliationSkip as exc:
        logger.info("Skipped event %s (%s): %s", event.event_id, event.type, exc.reason)
    else:
        logger.debug("Event %s applied, intent %s is %s", event.event_id, event.intent_id, state.value)

    return Response(status_code=200)
