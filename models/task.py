# models/task.py

from typing import List, Optional
from pydantic import BaseModel, Field

from models.enums import TaskStatus, Priority


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    priority: Priority = Priority.NORMAL
    due_date: Optional[str] = Field(None, description="ISO date or datetime")
    assignee_id: Optional[str] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    status: Optional[TaskStatus] = None
    priority: Optional[Priority] = None
    due_date: Optional[str] = None
    assignee_id: Optional[str] = None
    sort_order: Optional[int] = None


class ChecklistItemCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)


class ChecklistItemUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    is_completed: Optional[bool] = None


# -------------------------------------------------
# Workflow templates
# -------------------------------------------------
class WorkflowStep(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    priority: Priority = Priority.NORMAL
    estimated_days: Optional[int] = Field(None, ge=0, description="Due date offset from the day the workflow is applied")
    sort_order: Optional[int] = None


class WorkflowTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    permit_type: Optional[str] = Field(None, description="Subcode or project type this workflow suits")
    is_default: bool = False
    steps: List[WorkflowStep] = []


class WorkflowTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    permit_type: Optional[str] = None
    is_default: Optional[bool] = None
    steps: Optional[List[WorkflowStep]] = None


class ApplyWorkflow(BaseModel):
    template_id: str = Field(..., min_length=1)
