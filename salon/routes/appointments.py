import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from salon.dependencies import get_appointment_service, verify_cron_caller
from salon.services.appointment_service import AppointmentService
from salon.utils.time import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Appointments"])


@router.post("/auto-complete-appointments", dependencies=[Depends(verify_cron_caller)])
async def auto_complete_appointments(service: AppointmentService = Depends(get_appointment_service)):
    """Complete confirmed appointments older than the configured age. Called by cron."""
    try:
        result = await service.process_pending_completions()
    except SQLAlchemyError as e:
        logger.exception("Auto-completion sweep failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": f"Erro no processamento: {e.__class__.__name__}",
                "timestamp": utcnow().isoformat(),
                "message": "Erro no processamento de conclusões automáticas",
            },
        )

    return {
        "success": True,
        "data": result,
        "timestamp": utcnow().isoformat(),
        "message": (
            f"Processamento concluído com sucesso. {result['completed_count']} "
            "agendamentos concluídos automaticamente."
        ),
    }
