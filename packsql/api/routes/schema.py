"""
Schema Slicing Routes

Slice a posted schema snapshot, activate the result or a saved slice file,
and read the active slice or one of its packs back.
"""

import logging
from pathlib import Path
from typing import Any, Literal

from fastapi import APIRouter, HTTPException, Query, status

from packsql.config import get_settings
from packsql.models.schema import Schema
from packsql.slicing.graph import GraphSlicer
from packsql.slicing.io import load_policies, load_slice, save_slice
from packsql.slicing.policy import PolicySlicer, SliceOptions

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/schema/slice", status_code=status.HTTP_200_OK)
async def slice_schema(
    schema: Schema,
    strategy: Literal["graph", "policy"] = Query("graph", description="Partitioning strategy"),
    save: bool = Query(False, description="Also write the slice to the output directory"),
) -> dict[str, Any]:
    """
    Partition a schema snapshot, make it the active slice and return it.

    The policy strategy reads department policies from SLICING_POLICIES_PATH.
    """
    from packsql.api.main import app_state

    settings = get_settings()
    if strategy == "policy":
        if settings.slicing.policies_path is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Policy slicing requires SLICING_POLICIES_PATH to be set.",
            )
        try:
            policies = load_policies(settings.slicing.policies_path)
            slicer = PolicySlicer(SliceOptions.from_settings(policies, settings.slicing))
        except (FileNotFoundError, ValueError) as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    else:
        slicer = GraphSlicer.from_settings(settings.slicing)

    result = slicer.slice(schema)
    app_state["cache"].set(result, schema)
    logger.info(
        f"Activated {strategy} slice of {schema.schema_name}",
        extra={"strategy": strategy, "packs": len(result.packs)},
    )

    if save:
        save_slice(result, settings.schema_output_dir)
    return result.to_document()


@router.get("/schema/slice", status_code=status.HTTP_200_OK)
async def get_active_slice() -> dict[str, Any]:
    """Return the active slice document."""
    from packsql.api.main import app_state

    current = app_state["cache"].try_get()
    if current is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active slice",
        )
    return current.to_document()


@router.post("/schema/activate", status_code=status.HTTP_200_OK)
async def activate_saved_slice(
    file_name: str = Query(..., alias="fileName", description="Slice file in the output directory"),
) -> dict[str, Any]:
    """
    Make a previously saved slice the active one.

    The file is read from SCHEMA_OUTPUT_DIR. The slice is paired with the
    schema snapshot loaded from the database at startup, when there is one.
    """
    from packsql.api.main import app_state

    if not file_name.strip() or Path(file_name).name != file_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="fileName must be a plain file name inside the output directory",
        )

    path = get_settings().schema_output_dir / file_name
    try:
        result = load_slice(path)
    except FileNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported slice document: {e}",
        ) from e

    app_state["cache"].set(result, app_state["schema"])
    logger.info(
        f"Activated saved slice {path}",
        extra={"path": str(path), "packs": len(result.packs)},
    )
    return {
        "activated": True,
        "from": str(path),
        "schemaName": result.schema_name,
        "strategy": result.strategy,
        "packCount": len(result.packs),
    }


@router.get("/schema/pack", status_code=status.HTTP_200_OK)
async def get_pack(
    category_id: str = Query(..., alias="categoryId", description="Pack category id"),
) -> dict[str, Any]:
    """Return one pack of the active slice."""
    from packsql.api.main import app_state

    current = app_state["cache"].try_get()
    if current is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active slice")

    pack = current.get_pack(category_id)
    if pack is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Pack not found: {category_id}",
        )
    return pack.model_dump(by_alias=True, exclude_none=True)
