from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field
from typing import Dict, Any, List, Optional
import logging

from schema_sync.core.errors import AppError, ErrorType, get_troubleshooting_guidance
from schema_sync.models.base import ComparisonOptions
from schema_sync.models.migration import MigrationPlan
from schema_sync.models.schema import Schema, SchemaDiff
from schema_sync.services.comparison_engine import SchemaComparisonEngine
from schema_sync.services.generators.migration_planner import MigrationPlanner

logger = logging.getLogger(__name__)

router = APIRouter()


class PlanRequest(BaseModel):
    """Two schema snapshots to synchronize, source into target"""
    source: Schema
    target: Schema
    options: ComparisonOptions = Field(default_factory=ComparisonOptions)


class PlanResponse(BaseModel):
    empty: bool
    schema_diff: SchemaDiff
    migration_plan: MigrationPlan
    warnings: List[str]
    complex_modifications: List[str]
    renamed_tables: Dict[str, str]
    script: Optional[str] = None


def _http_error(error: AppError) -> HTTPException:
    status_code = 400 if error.error_type in (ErrorType.VALIDATION, ErrorType.SCHEMA) else 500
    return HTTPException(
        status_code=status_code,
        detail={
            "error": error.to_dict(),
            "guidance": get_troubleshooting_guidance(error.error_type),
        },
    )


@router.post("/plan")
async def plan_sync(request: PlanRequest) -> PlanResponse:
    """Compare two schema snapshots and preview the migration"""
    engine = SchemaComparisonEngine(request.options)
    planner = MigrationPlanner()

    try:
        diff = engine.compare(request.source, request.target)
        if engine.is_schema_diff_empty(diff):
            return PlanResponse(
                empty=True,
                schema_diff=diff,
                migration_plan=MigrationPlan(),
                warnings=[],
                complex_modifications=[],
                renamed_tables={},
            )

        plan = planner.plan(diff)
        if not plan.is_empty():
            planner.validate(plan)
    except AppError as e:
        logger.error(f"Failed to plan synchronization: {e}")
        raise _http_error(e)

    return PlanResponse(
        empty=False,
        schema_diff=diff,
        migration_plan=plan,
        warnings=plan.warnings,
        complex_modifications=engine.detect_complex_modifications(diff),
        renamed_tables=engine.detect_renamed_tables(request.source, request.target),
        script=plan.format_script() if not plan.is_empty() else None,
    )


@router.post("/validate")
async def validate_plan(plan: MigrationPlan) -> Dict[str, Any]:
    """Validate a migration plan before execution"""
    validation = {
        "valid": True,
        "errors": [],
        "warnings": list(plan.warnings),
        "summary": plan.summary.model_dump(),
    }

    try:
        MigrationPlanner().validate(plan)
    except AppError as e:
        validation["valid"] = False
        validation["errors"].append(e.message)

    if plan.has_destructive_operations():
        validation["warnings"].append("Ensure full database backup exists")

    return validation
