import pytest
from pydantic import ValidationError

from drivebook.routes.service_routes import CreateServiceRequest


def test_create_service_request_strips_name() -> None:
    request = CreateServiceRequest.model_validate({'name': '  Test prep  ', 'durationMinutes': 90, 'priceCents': 12000})

    assert request.name == 'Test prep'
    assert request.duration_minutes == 90


@pytest.mark.parametrize(
    'payload',
    [
        {'name': '   ', 'priceCents': 100},
        {'name': 'Lesson', 'durationMinutes': 0, 'priceCents': 100},
        {'name': 'Lesson', 'durationMinutes': 600, 'priceCents': 100},
        {'name': 'Lesson', 'priceCents': -1},
    ],
)
def test_create_service_request_rejects_invalid_payload(payload: dict) -> None:
    with pytest.raises(ValidationError):
        CreateServiceRequest.model_validate(payload)


def test_instructor_creates_service(api, factory) -> None:
    instructor = factory.instructor()
    api.login(instructor.profile)

    response = api.http.post('/services', json={'name': 'Highway driving', 'durationMinutes': 120, 'priceCents': 15000})

    assert response.status_code == 201
    body = response.json()
    assert body['instructorId'] == instructor.id
    assert body['durationMinutes'] == 120
    assert body['isActive'] is True


def test_student_cannot_create_service(api, factory) -> None:
    api.login(factory.student().profile)

    response = api.http.post('/services', json={'name': 'Highway driving', 'priceCents': 15000})

    assert response.status_code == 403


def test_list_services_filters_by_instructor_and_hides_inactive(api, factory) -> None:
    instructor = factory.instructor()
    factory.service(instructor, duration_minutes=90, name='Long lesson')
    factory.service(instructor, duration_minutes=45, name='Short lesson')
    factory.service(instructor, name='Retired lesson', is_active=False)
    factory.service(factory.instructor(), name='Someone else')

    response = api.http.get('/services', params={'instructorId': instructor.id})

    assert response.status_code == 200
    assert [service['name'] for service in response.json()] == ['Short lesson', 'Long lesson']
