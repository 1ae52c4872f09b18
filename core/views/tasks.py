"""
Task management views.

Tasks are assigned by one staff member to another about a patient.
Administrators see every task; doctors see the tasks they assigned or
were assigned.  Assignment, reassignment and completion notify the
people involved.
"""
from __future__ import annotations

from django.db import models, transaction
from django.db.models import Case, IntegerField, Value, When
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.models import Patient, Task, User
from core.permissions import IsStaffRole
from core.serializers.task import TaskCreateSerializer, TaskListQuerySerializer, TaskUpdateSerializer
from core.services.audit import log_action
from core.services.notifications import notify

PRIORITY_RANK = Case(
    When(priority='high', then=Value(0)),
    When(priority='medium', then=Value(1)),
    When(priority='low', then=Value(2)),
    output_field=IntegerField(),
)


def _user_ref(u: User) -> dict | None:
    if u is None:
        return None
    return {'id': u.id, 'name': u.display_name(), 'email': u.email}


def _serialize(task: Task) -> dict:
    return {
        'id': task.id,
        'title': task.title,
        'description': task.description,
        'priority': task.priority,
        'status': task.status,
        'dueDate': task.due_date.isoformat() if task.due_date else None,
        'assignedTo': _user_ref(task.assigned_to),
        'assignedBy': _user_ref(task.assigned_by),
        'patient': {'id': task.patient.id, 'name': task.patient.full_name()} if task.patient_id else None,
        'notificationSent': task.notification_sent,
        'notificationRead': task.notification_read,
        'completedAt': task.completed_at.isoformat() if task.completed_at else None,
        'createdAt': task.created_at.isoformat() if task.created_at else None,
        'updatedAt': task.updated_at.isoformat() if task.updated_at else None,
    }


def _visible_tasks(user: User):
    qs = Task.objects.select_related('assigned_to', 'assigned_by', 'patient')
    if user.is_admin:
        return qs
    return qs.filter(models.Q(assigned_to=user) | models.Q(assigned_by=user))


def _get_task(user: User, pk: int) -> Task:
    task = Task.objects.select_related('assigned_to', 'assigned_by', 'patient').filter(pk=pk).first()
    if task is None:
        raise NotFound('Task not found')
    if not (user.is_admin or task.assigned_to_id == user.id or task.assigned_by_id == user.id):
        raise PermissionDenied('Access denied')
    return task


def _resolve_assignee(user_id: int) -> User:
    assignee = User.objects.filter(pk=user_id, is_active=True).first()
    if assignee is None:
        raise ValidationError({'assignedTo': 'Assigned user not found'})
    return assignee


def _resolve_patient(user: User, patient_id: int) -> Patient:
    patient = Patient.objects.filter(pk=patient_id).first()
    if patient is None:
        raise ValidationError({'patient': 'Patient not found'})
    if not user.is_admin and patient.assigned_doctor_id != user.id:
        raise PermissionDenied('Access denied to this patient')
    return patient


def _notify_assigned(task: Task, title: str) -> None:
    notify(
        task.assigned_to,
        title=title,
        message=f"{task.assigned_by.display_name()} assigned you a task: {task.title}",
        type='task',
        priority=task.priority,
        related_task=task,
        related_patient=task.patient,
        link=f"/tasks/{task.id}",
    )
    Task.objects.filter(pk=task.pk).update(notification_sent=True)
    task.notification_sent = True


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def tasks_list(request):
    user: User = request.user
    if request.method == 'GET':
        q = TaskListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        f = q.validated_data
        qs = _visible_tasks(user)
        if 'status' in f:
            qs = qs.filter(status=f['status'])
        if 'priority' in f:
            qs = qs.filter(priority=f['priority'])
        if 'assignedTo' in f:
            qs = qs.filter(assigned_to_id=f['assignedTo'])
        if 'patient' in f:
            qs = qs.filter(patient_id=f['patient'])
        if 'dueDate' in f:
            qs = qs.filter(due_date__date__lte=f['dueDate'])
        if f.get('search'):
            qs = qs.filter(models.Q(title__icontains=f['search']) | models.Q(description__icontains=f['search']))
        return Response([_serialize(t) for t in qs.order_by('-created_at', '-id')])
    s = TaskCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    assignee = _resolve_assignee(vd['assignedTo'])
    patient = _resolve_patient(user, vd['patient'])
    with transaction.atomic():
        task = Task.objects.create(
            title=vd['title'],
            description=vd['description'],
            priority=vd['priority'],
            status=vd['status'],
            due_date=vd.get('dueDate'),
            assigned_to=assignee,
            assigned_by=user,
            patient=patient,
        )
        log_action(user=user, action='task_create', obj=task)
    _notify_assigned(task, 'New Task Assigned')
    return Response(_serialize(task), status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def my_tasks(request):
    qs = Task.objects.select_related('assigned_to', 'assigned_by', 'patient').filter(assigned_to=request.user)
    status_val = request.query_params.get('status')
    if status_val:
        qs = qs.filter(status=status_val)
    qs = qs.annotate(priority_rank=PRIORITY_RANK).order_by('priority_rank', models.F('due_date').asc(nulls_last=True))
    return Response([_serialize(t) for t in qs])


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def task_detail(request, pk: int):
    user: User = request.user
    task = _get_task(user, pk)
    if request.method == 'GET':
        return Response(_serialize(task))
    if request.method == 'DELETE':
        if not (user.is_admin or task.assigned_by_id == user.id):
            raise PermissionDenied('Only the assigner or an administrator can delete this task')
        log_action(user=user, action='task_delete', obj=task, detail={'title': task.title})
        task.delete()
        return Response({'message': 'Task deleted successfully'})
    s = TaskUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    previous_assignee = task.assigned_to_id
    was_completed = task.status == Task.STATUS_COMPLETED
    with transaction.atomic():
        for key, attr in (('title', 'title'), ('description', 'description'),
                          ('priority', 'priority'), ('status', 'status'), ('dueDate', 'due_date')):
            if key in vd:
                setattr(task, attr, vd[key])
        if 'assignedTo' in vd:
            task.assigned_to = _resolve_assignee(vd['assignedTo'])
        if 'patient' in vd:
            task.patient = _resolve_patient(user, vd['patient'])
        task.save()
    if task.assigned_to_id != previous_assignee:
        _notify_assigned(task, 'Task Assigned to You')
    if task.status == Task.STATUS_COMPLETED and not was_completed and task.assigned_by_id != user.id:
        notify(
            task.assigned_by,
            title='Task Completed',
            message=f"{user.display_name()} completed the task: {task.title}",
            type='task',
            priority=task.priority,
            related_task=task,
            related_patient=task.patient,
            link=f"/tasks/{task.id}",
        )
    return Response(_serialize(task))
