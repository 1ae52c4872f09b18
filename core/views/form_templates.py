"""
Form builder template views.

Doctors see their own templates plus the public ones; only the owner or
an administrator may change or delete a template.
"""
from __future__ import annotations

from django.db import models, transaction
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.models import FormTemplate, User
from core.permissions import IsStaffRole
from core.serializers.form import FormTemplateQuerySerializer, FormTemplateSerializer
from core.services.audit import log_action
from core.services.forms import duplicate_items, normalize_items


def serialize_template(t: FormTemplate, *, with_items: bool = True) -> dict:
    data = {
        'id': t.id,
        'title': t.title,
        'description': t.description,
        'createdBy': {'id': t.created_by_id, 'name': t.created_by.display_name()} if t.created_by_id else None,
        'isActive': t.is_active,
        'isPublic': t.is_public,
        'language': t.language,
        'itemCount': len(t.items or []),
        'createdAt': t.created_at.isoformat() if t.created_at else None,
        'updatedAt': t.updated_at.isoformat() if t.updated_at else None,
    }
    if with_items:
        data['items'] = t.items or []
    return data


def _get_template(user: User, pk: int, *, write: bool = False) -> FormTemplate:
    t = FormTemplate.objects.select_related('created_by').filter(pk=pk).first()
    if t is None:
        raise NotFound('Form template not found')
    owner_or_admin = user.is_admin or t.created_by_id == user.id
    if write and not owner_or_admin:
        raise PermissionDenied('Only the owner or an administrator can modify this template')
    if not write and not (owner_or_admin or t.is_public):
        raise PermissionDenied('Access denied')
    return t


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def templates_list(request):
    user: User = request.user
    if request.method == 'POST':
        s = FormTemplateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        items = normalize_items(vd['items'])
        with transaction.atomic():
            t = FormTemplate.objects.create(
                title=vd['title'],
                description=vd['description'],
                created_by=user,
                is_active=vd['isActive'],
                is_public=vd['isPublic'],
                language=vd['language'],
                items=items,
            )
        log_action(user=user, action='form_template_create', object_type='form_template', object_id=t.id)
        return Response(serialize_template(t), status=status.HTTP_201_CREATED)
    q = FormTemplateQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    f = q.validated_data
    qs = FormTemplate.objects.select_related('created_by')
    if not user.is_admin:
        qs = qs.filter(models.Q(created_by=user) | models.Q(is_public=True))
    if f['isActive'] is not None:
        qs = qs.filter(is_active=f['isActive'])
    if f['isPublic'] is not None:
        qs = qs.filter(is_public=f['isPublic'])
    if 'createdBy' in f:
        qs = qs.filter(created_by_id=f['createdBy'])
    if f.get('search'):
        qs = qs.filter(models.Q(title__icontains=f['search']) | models.Q(description__icontains=f['search']))
    return Response([serialize_template(t, with_items=False) for t in qs.order_by('-updated_at', '-id')])


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def template_detail(request, pk: int):
    user: User = request.user
    if request.method == 'GET':
        return Response(serialize_template(_get_template(user, pk)))
    t = _get_template(user, pk, write=True)
    if request.method == 'DELETE':
        tid = t.id
        t.delete()
        log_action(user=user, action='form_template_delete', object_type='form_template', object_id=tid)
        return Response({'message': 'Form template deleted successfully'})
    s = FormTemplateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    for key, attr in (('title', 'title'), ('description', 'description'), ('isActive', 'is_active'),
                      ('isPublic', 'is_public'), ('language', 'language')):
        if key in vd:
            setattr(t, attr, vd[key])
    if 'items' in vd:
        t.items = normalize_items(vd['items'])
    t.save()
    return Response(serialize_template(t))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def template_duplicate(request, pk: int):
    source = _get_template(request.user, pk)
    t = FormTemplate.objects.create(
        title=f"{source.title} (Copy)",
        description=source.description,
        created_by=request.user,
        is_active=source.is_active,
        is_public=False,
        language=source.language,
        items=duplicate_items(source.items),
    )
    return Response(serialize_template(t), status=status.HTTP_201_CREATED)
