from conftest import JOB_PAYLOAD, PROPOSAL_PAYLOAD, contract_payload, signup

def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}

class TestAuth:

    def test_signup_sets_cookie_and_returns_user(self, client):
        headers, user = signup(client, "Ada@Example.com", "client", "Ada")
        assert user["email"] == "ada@example.com"
        assert user["role"] == "client"
        assert "password" not in user

        resp = client.get("/api/auth/check-auth", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["user"]["id"] == user["id"]

    def test_duplicate_signup(self, client):
        signup(client, "ada@example.com", "client")
        resp = client.post("/api/auth/signup", json={
            "email": "ada@example.com", "name": "Ada", "password": "secret123", "role": "client",
        })
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_login(self, client):
        signup(client, "ada@example.com", "freelancer")
        ok = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "secret123"})
        bad = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "nope"})
        assert ok.status_code == 200
        assert ok.cookies.get("token")
        assert bad.status_code == 401
        assert bad.json()["message"] == "Invalid Credentials"

    def test_cookie_session_and_logout(self, client):
        signup(client, "ada@example.com", "client")
        assert client.get("/api/auth/check-auth").status_code == 200

        client.post("/api/auth/logout")
        client.cookies.clear()
        resp = client.get("/api/auth/check-auth")
        assert resp.status_code == 401
        assert resp.json() == {
            "success": False,
            "message": "Not authorized, please login",
            "error": "AuthenticationError",
        }

    def test_forged_token(self, client):
        resp = client.get("/api/auth/check-auth", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401

    def test_request_validation_envelope(self, client):
        resp = client.post("/api/auth/signup", json={"email": "not-an-email", "password": "x", "role": "admin"})
        body = resp.json()
        assert resp.status_code == 400
        assert body["success"] is False
        assert {"email", "password", "role", "name"} <= set(body["errors"])

    def test_profile_update(self, client):
        headers, _ = signup(client, "ada@example.com", "freelancer")
        resp = client.post("/api/users/profile", headers=headers, json={
            "personal": {"name": "Ada L", "bio": "Engines", "languages": ["English", "French"]},
            "professional": {"skills": ["Python"]},
            "userType": "freelancer",
        })
        assert resp.status_code == 200
        profile = client.get("/api/users/profile", headers=headers).json()["user"]
        assert profile["name"] == "Ada L"
        assert profile["profile"]["skills"] == ["Python"]
        assert profile["profile"]["languages"] == ["English", "French"]

class TestJobsApi:

    def test_post_and_list(self, client):
        client_headers, _ = signup(client, "client@example.com", "client")
        freelancer_headers, _ = signup(client, "freelancer@example.com", "freelancer")

        created = client.post("/api/jobs", headers=client_headers, json=JOB_PAYLOAD)
        assert created.status_code == 201
        job = created.json()["job"]
        assert job["budget"] == {"min": 100, "max": 500, "currency": "USD"}
        assert job["skillsRequired"] == ["React", "CSS"]

        listing = client.get("/api/jobs", headers=freelancer_headers, params={"search": "landing", "limit": 5})
        body = listing.json()
        assert [j["id"] for j in body["jobs"]] == [job["id"]]
        assert body["pagination"]["totalJobs"] == 1
        assert body["jobs"][0]["client"]["email"] == "client@example.com"

    def test_validation_errors_are_listed(self, client):
        headers, _ = signup(client, "client@example.com", "client")
        resp = client.post("/api/jobs", headers=headers, json={"title": "Half a job"})
        assert resp.status_code == 400
        assert "description" in resp.json()["errors"]

    def test_non_string_title_is_a_validation_error(self, client):
        headers, _ = signup(client, "client@example.com", "client")
        resp = client.post("/api/jobs", headers=headers, json=dict(JOB_PAYLOAD, title=123))
        assert resp.status_code == 400
        assert "title" in resp.json()["errors"]

    def test_freelancer_cannot_post(self, client):
        headers, _ = signup(client, "freelancer@example.com", "freelancer")
        resp = client.post("/api/jobs", headers=headers, json=JOB_PAYLOAD)
        assert resp.status_code == 403

    def test_apply_and_review(self, client):
        client_headers, _ = signup(client, "client@example.com", "client")
        freelancer_headers, _ = signup(client, "freelancer@example.com", "freelancer")
        job_id = client.post("/api/jobs", headers=client_headers, json=JOB_PAYLOAD).json()["job"]["id"]

        applied = client.post(f"/api/jobs/{job_id}/apply", headers=freelancer_headers, json=PROPOSAL_PAYLOAD)
        assert applied.status_code == 201
        again = client.post(f"/api/proposals/{job_id}", headers=freelancer_headers, json=PROPOSAL_PAYLOAD)
        assert again.status_code == 400

        mine = client.get("/api/jobs/my/jobs", headers=client_headers).json()["jobs"]
        assert mine[0]["proposalCount"] == 1
        assert mine[0]["hasAcceptedProposal"] is False

        proposal_id = applied.json()["proposal"]["id"]
        resp = client.patch(
            f"/api/proposals/{proposal_id}/status", headers=client_headers, json={"status": "accepted"}
        )
        assert resp.status_code == 200
        mine = client.get("/api/jobs/my/jobs", headers=client_headers).json()["jobs"]
        assert mine[0]["hasAcceptedProposal"] is True

        inbox = client.get("/api/notifications", headers=freelancer_headers).json()
        assert inbox["notifications"][0]["type"] == "PROPOSAL_ACCEPTED"
        assert inbox["unreadCount"] == 1

        read = client.patch(
            "/api/notifications/mark-read",
            headers=freelancer_headers,
            json={"notificationIds": [inbox["notifications"][0]["id"]]},
        )
        assert read.json()["unreadCount"] == 0

    def test_delete_job_removes_proposals(self, client):
        client_headers, _ = signup(client, "client@example.com", "client")
        freelancer_headers, _ = signup(client, "freelancer@example.com", "freelancer")
        job_id = client.post("/api/jobs", headers=client_headers, json=JOB_PAYLOAD).json()["job"]["id"]
        client.post(f"/api/jobs/{job_id}/apply", headers=freelancer_headers, json=PROPOSAL_PAYLOAD)

        assert client.delete(f"/api/jobs/{job_id}", headers=client_headers).status_code == 200
        assert client.get(f"/api/jobs/{job_id}", headers=client_headers).status_code == 404
        assert client.get("/api/proposals/my-proposals", headers=freelancer_headers).json()["proposals"] == []

    def test_bookmarks(self, client):
        client_headers, _ = signup(client, "client@example.com", "client")
        freelancer_headers, _ = signup(client, "freelancer@example.com", "freelancer")
        job_id = client.post("/api/jobs", headers=client_headers, json=JOB_PAYLOAD).json()["job"]["id"]

        assert client.post("/api/bookmarks", headers=freelancer_headers, json={"jobId": job_id}).status_code == 200
        assert client.post("/api/bookmarks", headers=freelancer_headers, json={"jobId": job_id}).status_code == 400
        assert client.get(f"/api/bookmarks/check/{job_id}", headers=freelancer_headers).json()["isBookmarked"]
        saved = client.get("/api/bookmarks", headers=freelancer_headers).json()["data"]
        assert [b["id"] for b in saved] == [job_id]

        assert client.delete(f"/api/bookmarks/{job_id}", headers=freelancer_headers).status_code == 200
        assert client.delete(f"/api/bookmarks/{job_id}", headers=freelancer_headers).status_code == 404

class TestContractFlow:

    def setup_parties(self, client):
        client_headers, _ = signup(client, "client@example.com", "client")
        freelancer_headers, _ = signup(client, "freelancer@example.com", "freelancer")
        outsider_headers, _ = signup(client, "outsider@example.com", "freelancer")
        job_id = client.post("/api/jobs", headers=client_headers, json=JOB_PAYLOAD).json()["job"]["id"]
        proposal = client.post(f"/api/jobs/{job_id}/apply", headers=freelancer_headers, json=PROPOSAL_PAYLOAD)
        return client_headers, freelancer_headers, outsider_headers, proposal.json()["proposal"]["id"]

    def test_full_lifecycle(self, client):
        client_headers, freelancer_headers, outsider_headers, proposal_id = self.setup_parties(client)

        created = client.post(
            f"/api/contracts/proposal/{proposal_id}", headers=client_headers, json=contract_payload((100,))
        )
        assert created.status_code == 201
        contract = created.json()["contract"]
        cid, mid = contract["id"], contract["milestones"][0]["id"]
        assert contract["status"] == "draft"
        assert contract["freelancer"]["email"] == "freelancer@example.com"

        assert client.get(f"/api/contracts/{cid}", headers=outsider_headers).status_code == 403

        funded = client.post(f"/api/contracts/{cid}/fund", headers=client_headers, json={"amount": 100})
        assert funded.json()["contract"]["escrowBalance"] == 100
        activated = client.post(f"/api/contracts/{cid}/activate", headers=client_headers)
        assert activated.json()["contract"]["status"] == "active"

        submitted = client.post(
            f"/api/contracts/{cid}/milestones/{mid}/submit",
            headers=freelancer_headers,
            files=[
                ("files", ("report.txt", b"the deliverable", "text/plain")),
                ("files", ("empty.txt", b"", "text/plain")),
            ],
            data={"comments": "All done"},
        )
        assert submitted.status_code == 200
        body = submitted.json()
        assert body["warnings"]["failedFiles"] == ["empty.txt"]
        current = body["contract"]["milestones"][0]["currentSubmission"]
        assert current["comments"] == "All done"
        storage_key = current["files"][0]["storageKey"]

        download = client.get(
            f"/api/contracts/{cid}/milestones/{mid}/files/{storage_key}/download", headers=client_headers
        )
        assert download.status_code == 200
        assert download.content == b"the deliverable"
        assert download.headers["content-disposition"] == "attachment; filename*=UTF-8''report.txt"
        assert "token" in download.cookies
        assert client.get(
            f"/api/contracts/{cid}/milestones/{mid}/files/{storage_key}/download", headers=outsider_headers
        ).status_code == 403

        reviewed = client.post(
            f"/api/contracts/{cid}/milestones/{mid}/review",
            headers=client_headers,
            json={"status": "approved", "feedback": "Lovely"},
        )
        milestone = reviewed.json()["contract"]["milestones"][0]
        assert milestone["status"] == "completed"
        assert milestone["currentSubmission"] is None
        assert milestone["submissionHistory"][0]["clientFeedback"] == "Lovely"

        released = client.post(f"/api/contracts/{cid}/milestones/{mid}/release", headers=client_headers)
        assert released.json()["contract"]["escrowBalance"] == 0

        completed = client.post(f"/api/contracts/{cid}/complete", headers=client_headers)
        assert completed.status_code == 200
        assert completed.json()["contract"]["status"] == "completed"
        assert completed.json()["contract"]["job"]["status"] == "completed"

        me = client.get("/api/auth/check-auth", headers=freelancer_headers).json()["user"]
        assert me["totalEarnings"] == 100
        assert me["totalOrders"] == 1

        mine = client.get("/api/contracts/my/contracts", headers=freelancer_headers).json()["contracts"]
        assert [c["id"] for c in mine] == [cid]

    def test_state_errors_are_400(self, client):
        client_headers, freelancer_headers, _, proposal_id = self.setup_parties(client)
        contract = client.post(
            f"/api/contracts/proposal/{proposal_id}", headers=client_headers, json=contract_payload()
        ).json()["contract"]
        cid, mid = contract["id"], contract["milestones"][0]["id"]

        activate = client.post(f"/api/contracts/{cid}/activate", headers=client_headers)
        assert activate.status_code == 400
        assert activate.json()["message"] == "Contract must be funded before activation"

        release = client.post(f"/api/contracts/{cid}/milestones/{mid}/release", headers=client_headers)
        assert release.status_code == 400

        complete = client.post(f"/api/contracts/{cid}/complete", headers=client_headers)
        assert complete.status_code == 400

        fund = client.post(f"/api/contracts/{cid}/fund", headers=client_headers, json={"amount": 0})
        assert fund.status_code == 400

        by_freelancer = client.post(f"/api/contracts/{cid}/fund", headers=freelancer_headers, json={"amount": 10})
        assert by_freelancer.status_code == 403

    def test_upload_of_only_broken_files(self, client):
        client_headers, freelancer_headers, _, proposal_id = self.setup_parties(client)
        contract = client.post(
            f"/api/contracts/proposal/{proposal_id}", headers=client_headers, json=contract_payload()
        ).json()["contract"]
        cid, mid = contract["id"], contract["milestones"][0]["id"]

        resp = client.post(
            f"/api/contracts/{cid}/milestones/{mid}/submit",
            headers=freelancer_headers,
            files=[("files", ("empty.txt", b"", "text/plain"))],
        )
        assert resp.status_code == 500
        assert resp.json()["message"] == "Failed to save any files"

        bad_type = client.post(
            f"/api/contracts/{cid}/milestones/{mid}/submit",
            headers=freelancer_headers,
            files=[("files", ("run.sh", b"echo", "application/x-sh"))],
        )
        assert bad_type.status_code == 400

class TestMessagingApi:

    def test_send_and_read(self, client):
        a_headers, a = signup(client, "a@example.com", "client", "Ann")
        b_headers, b = signup(client, "b@example.com", "freelancer", "Bob")

        sent = client.post("/api/messages", headers=a_headers, json={"receiverId": b["id"], "content": "Hi Bob"})
        assert sent.status_code == 201
        assert sent.json()["data"]["receiver"]["id"] == b["id"]

        assert client.get("/api/messages/unread", headers=b_headers).json()["data"]["count"] == 1
        convo = client.get(f"/api/messages/conversation/{a['id']}", headers=b_headers).json()
        assert [m["content"] for m in convo["data"]] == ["Hi Bob"]
        assert client.get("/api/messages/unread", headers=b_headers).json()["data"]["count"] == 0

        rows = client.get("/api/messages/conversations", headers=a_headers).json()["data"]
        assert rows[0]["user"]["id"] == b["id"]
        assert rows[0]["lastMessage"]["content"] == "Hi Bob"

    def test_stream_requires_login(self, client):
        client.cookies.clear()
        assert client.get("/api/messages/stream").status_code == 401

class TestPostsApi:

    def test_post_like_comment(self, client):
        author_headers, _ = signup(client, "author@example.com", "freelancer")
        reader_headers, _ = signup(client, "reader@example.com", "client")

        created = client.post("/api/posts", headers=author_headers, json={"content": "Open for work", "tags": ["Dev"]})
        assert created.status_code == 201
        post_id = created.json()["post"]["id"]

        liked = client.post(f"/api/posts/{post_id}/like", headers=reader_headers).json()
        assert liked["likeCount"] == 1 and liked["isLiked"] is True
        client.post(f"/api/posts/{post_id}/comment", headers=reader_headers, json={"content": "Nice"})

        feed = client.get("/api/posts", headers=reader_headers).json()
        assert feed["posts"][0]["isLiked"] is True
        assert feed["posts"][0]["commentCount"] == 1
        assert feed["posts"][0]["tags"] == ["dev"]
