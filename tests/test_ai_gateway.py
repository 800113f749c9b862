import os
from types import SimpleNamespace

import pytest

import ai_gateway
import config
from schemas import DocParams


def _response(*parts, text=None):
    content = SimpleNamespace(parts=list(parts))
    return SimpleNamespace(candidates=[SimpleNamespace(content=content)], text=text)


def _part(data=None, text=None):
    inline = SimpleNamespace(data=data) if data is not None else None
    return SimpleNamespace(inline_data=inline, text=text)


class FakeClient:
    """Stands in for genai.Client; behaviour is set per test through class attributes."""
    content_response = None
    content_error = None
    operations_seq = []
    calls = []

    def __init__(self, api_key):
        self.api_key = api_key
        self.models = SimpleNamespace(
            generate_content=self._generate_content,
            generate_videos=self._generate_videos,
        )
        self.operations = SimpleNamespace(get=self._get_operation)

    def _generate_content(self, model, contents):
        FakeClient.calls.append((model, contents))
        if FakeClient.content_error:
            raise FakeClient.content_error
        return FakeClient.content_response

    def _generate_videos(self, model, prompt, config):
        FakeClient.calls.append((model, prompt))
        return FakeClient.operations_seq.pop(0)

    def _get_operation(self, operation):
        return FakeClient.operations_seq.pop(0)


@pytest.fixture(autouse=True)
def fake_client(monkeypatch):
    FakeClient.content_response = None
    FakeClient.content_error = None
    FakeClient.operations_seq = []
    FakeClient.calls = []
    monkeypatch.setattr(ai_gateway.genai, "Client", FakeClient)
    return FakeClient


def _doc_params(**kw):
    base = dict(
        type="Modul Ajar (Kurikulum Merdeka)", teacherName="Nasrudin, S.Pd",
        teacherNip="19850101 201001 1 001", schoolName="SMA Negeri 1 Contoh",
        headmaster="Dr. H. Kepala Sekolah, M.Pd", headmasterNip="19700101 199501 1 002",
        subject="Bahasa Indonesia", grade="XII", topic="Teks Eksposisi",
        semester="Genap", year="2024/2025", date="Bandung, 1 Juli 2024",
    )
    base.update(kw)
    return DocParams(**base)


@pytest.mark.parametrize("func,args", [
    (ai_gateway.generate_image, ("kucing",)),
    (ai_gateway.generate_video, ("kucing",)),
    (ai_gateway.generate_teaching_ideas, ("puisi",)),
])
def test_missing_key_is_rejected_before_request(fake_client, func, args):
    with pytest.raises(ai_gateway.MissingApiKeyError):
        func(*args, "")
    assert fake_client.calls == []


def test_generate_image_returns_data_url(fake_client):
    fake_client.content_response = _response(_part(text="ini gambarnya"), _part(data=b"\x89PNG"))
    result = ai_gateway.generate_image("kucing", "key")
    assert result == {"data": "data:image/png;base64,iVBORw=="}
    assert fake_client.calls[0][0] == ai_gateway.IMAGE_MODEL


def test_generate_image_text_reply_becomes_error(fake_client):
    fake_client.content_response = _response(_part(text="Maaf, permintaan ditolak."))
    assert ai_gateway.generate_image("x", "key") == {"error": "Maaf, permintaan ditolak."}


def test_generate_image_empty_reply(fake_client):
    fake_client.content_response = _response()
    assert ai_gateway.generate_image("x", "key") == {"error": "Gagal menghasilkan gambar."}


def test_generate_image_provider_error(fake_client):
    fake_client.content_error = RuntimeError("quota habis")
    assert ai_gateway.generate_image("x", "key") == {"error": "quota habis"}


def _operation(done, uri=None):
    response = None
    if done:
        video = SimpleNamespace(uri=uri) if uri else None
        response = SimpleNamespace(generated_videos=[SimpleNamespace(video=video)])
    return SimpleNamespace(done=done, response=response)


def test_generate_video_polls_then_downloads(fake_client, monkeypatch, tmp_path):
    fake_client.operations_seq = [
        _operation(False),
        _operation(False),
        _operation(True, uri="https://example.test/v1/files/abc:download?alt=media"),
    ]
    requested = {}

    def fake_get(url, params=None, timeout=None):
        requested["url"] = url
        requested["params"] = params
        return SimpleNamespace(content=b"mp4-bytes", raise_for_status=lambda: None)

    monkeypatch.setattr(ai_gateway.requests, "get", fake_get)
    monkeypatch.setattr(config, "MEDIA_DIR", str(tmp_path))

    url = ai_gateway.generate_video("pantai", "key", poll_interval=0)

    assert fake_client.operations_seq == []
    assert requested["params"] == {"key": "key"}
    assert url.startswith("file://")
    path = url[len("file://"):]
    assert os.path.dirname(path) == str(tmp_path)
    with open(path, "rb") as f:
        assert f.read() == b"mp4-bytes"


def test_generate_video_without_uri_raises(fake_client):
    fake_client.operations_seq = [_operation(True)]
    with pytest.raises(ai_gateway.AIGatewayError, match="No video URI"):
        ai_gateway.generate_video("pantai", "key", poll_interval=0)


def test_generate_document_prompt_has_signature_block(fake_client):
    fake_client.content_response = _response(text="<p>Modul</p>")
    html = ai_gateway.generate_document(_doc_params(), "key")
    assert html == "<p>Modul</p>"
    model, prompt = fake_client.calls[0]
    assert model == ai_gateway.DOCUMENT_MODEL
    assert "Titi Mangsa: Bandung, 1 Juli 2024" in prompt
    assert "Kepala Sekolah: Dr. H. Kepala Sekolah, M.Pd (NIP: 19700101 199501 1 002)" in prompt
    assert "Guru: Nasrudin, S.Pd (NIP: 19850101 201001 1 001)" in prompt
    assert "Jenjang: SMA/MA" in prompt


def test_generate_document_uses_jenjang(fake_client):
    fake_client.content_response = _response(text="<p/>")
    ai_gateway.generate_document(_doc_params(jenjang="SMP/MTs"), "key")
    assert "Jenjang: SMP/MTs" in fake_client.calls[0][1]


def test_generate_document_error_propagates(fake_client):
    fake_client.content_error = RuntimeError("503 overloaded")
    with pytest.raises(ai_gateway.AIGatewayError, match="503 overloaded"):
        ai_gateway.generate_document(_doc_params(), "key")


def test_generate_document_empty_text(fake_client):
    fake_client.content_response = _response(text=None)
    assert ai_gateway.generate_document(_doc_params(), "key") == "<p>Gagal menghasilkan dokumen.</p>"


def test_teaching_ideas_failure_message(fake_client):
    fake_client.content_error = RuntimeError("boom")
    assert ai_gateway.generate_teaching_ideas("puisi", "key") == "Maaf, terjadi kesalahan koneksi AI."
