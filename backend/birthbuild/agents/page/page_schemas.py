"""Page agent tool schema and result models"""
from pydantic import BaseModel
from typing import List

from birthbuild.core.model_client import ToolDefinition


PAGE_TOOL = ToolDefinition(
    name="output_page",
    description="Output the generated HTML page.",
    input_schema={
        "type": "object",
        "properties": {
            "html": {
                "type": "string",
                "description": "Complete HTML page content (<!DOCTYPE html>...</html>).",
            },
        },
        "required": ["html"],
    },
)


class PageResult(BaseModel):
    """A validated, sanitised page with the canonical CSS enforced"""
    page: str
    filename: str
    html: str
    stripped: List[str] = []
    attempts: int = 1
