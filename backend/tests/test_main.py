def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "version": "1.0.0", "database": True}


def test_ruta_inexistente(client):
    r = client.get("/no-existe")
    assert r.status_code == 404
    assert r.json() == {"message": "Ruta API no encontrada"}


def test_token_invalido(client):
    r = client.get("/registros", headers={"Authorization": "Bearer no-es-un-jwt"})
    assert r.status_code == 401
