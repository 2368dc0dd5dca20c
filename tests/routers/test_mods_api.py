HERO = "chars/hero/skin1.bin"


def _install(client, name, files, **extra):
    body = {"name": name, "version": "1.0.0", "files": files, **extra}
    return client.post("/api/v1/mods", json=body)


class TestInstall:
    def test_install_and_list(self, client):
        r = _install(client, "Hero", [{"target_path": "/" + HERO, "content_hash": "AA"}])
        assert r.status_code == 201
        data = r.json()
        assert data["result"] == "success"
        assert data["mod"]["name"] == "Hero"
        assert data["mod"]["claim_count"] == 1
        assert data["ambiguous_paths"] == []

        listed = client.get("/api/v1/mods").json()
        assert [m["name"] for m in listed] == ["Hero"]

    def test_install_accepts_pairs_and_origin(self, client):
        r = _install(
            client,
            "Hero",
            [[HERO, "aa"]],
            origin={"kind": "github_release", "locator": "owner/hero", "options": {"tag_prefix": "v"}},
        )
        assert r.status_code == 201
        origin = r.json()["mod"]["origin"]
        assert origin == {"kind": "github_release", "locator": "owner/hero", "options": {"tag_prefix": "v"}}

    def test_tie_reported_as_ambiguous(self, client):
        _install(client, "A", [[HERO, "aa"]], priority=1)
        r = _install(client, "B", [[HERO, "bb"]], priority=1)
        assert r.status_code == 201
        assert r.json()["result"] == "ambiguous"
        assert r.json()["ambiguous_paths"] == [HERO]

    def test_invalid_path_rejected(self, client):
        r = _install(client, "Bad", [["../../etc/passwd", "aa"]])
        assert r.status_code == 422
        assert r.json()["result"] == "invalid_input"

    def test_missing_fields_rejected(self, client):
        r = client.post("/api/v1/mods", json={"version": "1.0"})
        assert r.status_code == 422
        assert r.json()["result"] == "invalid_input"
        assert any("name" in err["loc"] for err in r.json()["detail"])

    def test_blank_name_rejected(self, client):
        r = _install(client, "   ", [[HERO, "aa"]])
        assert r.status_code == 422


class TestGetAndRemove:
    def test_get_by_id_and_name(self, client):
        mod_id = _install(client, "Hero", [[HERO, "aa"]]).json()["mod"]["id"]
        by_id = client.get(f"/api/v1/mods/{mod_id}")
        by_name = client.get("/api/v1/mods/Hero")
        assert by_id.status_code == by_name.status_code == 200
        assert by_id.json() == by_name.json()
        assert by_id.json()["claims"] == [{"target_path": HERO, "content_hash": "aa"}]

    def test_unknown_mod(self, client):
        r = client.get("/api/v1/mods/999")
        assert r.status_code == 404
        assert r.json()["result"] == "not_found"

    def test_uninstall(self, client):
        mod_id = _install(client, "Hero", [[HERO, "aa"], ["x.bin", "bb"]]).json()["mod"]["id"]
        r = client.delete(f"/api/v1/mods/{mod_id}")
        assert r.status_code == 200
        assert r.json() == {"result": "success", "removed_mod_id": mod_id, "removed_claims": 2}
        assert client.get(f"/api/v1/mods/{mod_id}").status_code == 404
        assert client.delete(f"/api/v1/mods/{mod_id}").status_code == 404


class TestToggleAndPriority:
    def test_disable_resolves_tie(self, client):
        a = _install(client, "A", [[HERO, "aa"]], priority=1).json()["mod"]["id"]
        _install(client, "B", [[HERO, "bb"]], priority=1)
        r = client.post(f"/api/v1/mods/{a}/disable")
        assert r.status_code == 200
        assert r.json()["mod"]["enabled"] is False
        assert r.json()["result"] == "success"

        r = client.post(f"/api/v1/mods/{a}/enable")
        assert r.json()["mod"]["enabled"] is True
        assert r.json()["result"] == "ambiguous"

    def test_priority_breaks_tie(self, client):
        a = _install(client, "A", [[HERO, "aa"]], priority=1).json()["mod"]["id"]
        _install(client, "B", [[HERO, "bb"]], priority=1)
        r = client.put(f"/api/v1/mods/{a}/priority", json={"priority": 5})
        assert r.status_code == 200
        assert r.json()["result"] == "success"
        assert r.json()["mod"]["priority"] == 5

    def test_priority_requires_int(self, client):
        _install(client, "A", [[HERO, "aa"]])
        r = client.put("/api/v1/mods/A/priority", json={"priority": "high"})
        assert r.status_code == 422


class TestRoot:
    def test_root_and_health(self, client):
        assert client.get("/").json() == {"status": "ok"}
        assert client.get("/health").json() == {"status": "healthy"}
