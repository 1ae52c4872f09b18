import logging

from django.db import DatabaseError, connections
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

logger = logging.getLogger(__name__)


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def health(request):
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
    except DatabaseError as e:
        logger.error("health check database error: %s", e)
        return Response({'ok': False, 'db': False, 'error': str(e)}, status=503)
    return Response({'ok': True, 'db': bool(row and row[0] == 1)})
