"""
Pydantic schemas for the tracker API.

Field names are the Python names; aliases are the persisted column names,
which is also what goes over the wire. Requests accept either.
"""

from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from tracker.db import ProjectFields
from tracker.membership import encode


class ColumnModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SignupRequest(ColumnModel):
    name: Optional[str] = Field(default=None, alias="nombre")
    email: str
    password_secret: str = Field(..., alias="pass")


class LoginRequest(ColumnModel):
    email: str
    password_secret: str = Field(..., alias="pass")


class UserResponse(ColumnModel):
    id: int
    name: Optional[str] = Field(default=None, alias="nombre")
    email: Optional[str] = None


class UsersResponse(BaseModel):
    usuarios: list[UserResponse]


class LoginResponse(BaseModel):
    message: str
    user: UserResponse


class ProjectPayload(ColumnModel):
    name: Optional[str] = Field(default=None, alias="nombre_proyecto")
    owner_handle: Optional[str] = Field(default=None, alias="usuario_instagram")
    ticket_info: Optional[str] = Field(default=None, alias="tickets")
    setter_rate: Optional[float] = Field(default=None, alias="tarifa_setter")
    sales_goal: Optional[float] = Field(default=None, alias="objetivo_ventas")
    estimated_revenue: Optional[float] = Field(
        default=None, alias="facturacion_estimada"
    )
    # Serialized "1,2,3" as stored, or a JSON list of ids.
    member_ids: Optional[Union[list[Union[int, str]], str, int]] = Field(
        default=None, alias="usuarios"
    )

    def to_fields(self) -> ProjectFields:
        member_ids = self.member_ids
        if isinstance(member_ids, list):
            member_ids = encode(member_ids)
        elif member_ids is not None:
            member_ids = str(member_ids)
        return ProjectFields(
            name=self.name,
            owner_handle=self.owner_handle,
            ticket_info=self.ticket_info,
            setter_rate=self.setter_rate,
            sales_goal=self.sales_goal,
            estimated_revenue=self.estimated_revenue,
            member_ids=member_ids,
        )


class ProjectResponse(ColumnModel):
    id: int
    name: Optional[str] = Field(default=None, alias="nombre_proyecto")
    owner_handle: Optional[str] = Field(default=None, alias="usuario_instagram")
    ticket_info: Optional[str] = Field(default=None, alias="tickets")
    setter_rate: Optional[float] = Field(default=None, alias="tarifa_setter")
    sales_goal: Optional[float] = Field(default=None, alias="objetivo_ventas")
    estimated_revenue: Optional[float] = Field(
        default=None, alias="facturacion_estimada"
    )
    member_ids: Optional[str] = Field(default=None, alias="usuarios")


class ProjectsResponse(BaseModel):
    proyectos: list[ProjectResponse]


class SingleProjectResponse(BaseModel):
    proyecto: ProjectResponse


class RevenueUpdateRequest(ColumnModel):
    estimated_revenue: Optional[float] = Field(
        default=None, alias="facturacion_estimada"
    )


class AddMemberRequest(ColumnModel):
    project_id: int = Field(..., alias="projectId")
    email: str


class ChangesResponse(BaseModel):
    changes: int


class MessageResponse(BaseModel):
    message: str
