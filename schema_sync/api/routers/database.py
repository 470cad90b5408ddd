from fastapi import APIRouter
from typing import Dict, Any
import logging

from schema_sync.core.database import MySQLDatabaseService
from schema_sync.core.errors import AppError, get_troubleshooting_guidance
from schema_sync.models.base import DatabaseConfig

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/test")
async def test_connection(config: DatabaseConfig) -> Dict[str, Any]:
    """Test database connection"""
    service = MySQLDatabaseService()
    try:
        conn = await service.connect(config)
    except AppError as e:
        logger.error(f"Database connection test failed: {e}")
        return {
            "success": False,
            "error_type": e.error_type.value,
            "message": e.get_user_message(),
            "guidance": get_troubleshooting_guidance(e.error_type),
        }

    await service.close(conn)
    return {
        "success": True,
        "database": config.database,
        "host": config.host,
        "message": f"Successfully connected to {config.describe()}",
    }
