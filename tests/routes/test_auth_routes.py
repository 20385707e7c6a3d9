import pytest

from portfolio_backend.auth import jwt_handler


def test_refresh_issues_new_token_pair(client) -> None:
    refresh_token = jwt_handler.create_refresh_token('operator@example.com')

    response = client.post('/auth/refresh', json={'refreshToken': refresh_token})

    assert response.status_code == 200
    body = response.json()
    assert body['message'] == 'Token refreshed successfully'
    assert jwt_handler.decode_access_token(body['accessToken'])['sub'] == 'operator@example.com'
    assert jwt_handler.decode_refresh_token(body['refreshToken'])['sub'] == 'operator@example.com'
    assert client.get('/appointments', headers={'Authorization': f'Bearer {body["accessToken"]}'}).status_code == 200


def test_refresh_requires_token(client) -> None:
    response = client.post('/auth/refresh', json={})

    assert response.status_code == 400
    assert response.json() == {'message': 'Refresh token is required'}


@pytest.mark.parametrize(
    'token_factory',
    [
        lambda: 'not-a-token',
        lambda: jwt_handler.create_access_token('operator@example.com'),
        lambda: jwt_handler.create_refresh_token('operator@example.com', expires_minutes=-1),
    ],
)
def test_refresh_rejects_invalid_tokens(client, token_factory) -> None:
    response = client.post('/auth/refresh', json={'refreshToken': token_factory()})

    assert response.status_code == 401
    assert response.json() == {'message': 'Invalid or expired refresh token'}


def test_refresh_rejects_unknown_user(client) -> None:
    refresh_token = jwt_handler.create_refresh_token('nobody@example.com')

    response = client.post('/auth/refresh', json={'refreshToken': refresh_token})

    assert response.status_code == 401
    assert response.json() == {'message': 'Invalid refresh token'}
