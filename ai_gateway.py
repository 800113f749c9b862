"""
Thin wrappers around the Gemini / Veo generative API.

Every call needs an API key from the caller. There is no retry, backoff or
caching; provider errors surface to the caller as they are.
"""

import base64
import logging
import os
import time
from typing import Dict, Optional
from uuid import uuid4

import requests
from google import genai
from google.genai import types

import config
from schemas import DocParams

logger = logging.getLogger(__name__)

IMAGE_MODEL = 'gemini-2.5-flash-image'
VIDEO_MODEL = 'veo-3.1-fast-generate-preview'
TEXT_MODEL = 'gemini-3-flash-preview'
DOCUMENT_MODEL = 'gemini-3-pro-preview'

VIDEO_POLL_SECONDS = 5


class AIGatewayError(Exception):
    pass


class MissingApiKeyError(AIGatewayError):
    def __init__(self):
        super().__init__("API Key diperlukan. Silakan isi API Key terlebih dahulu.")


def _client(api_key: Optional[str]) -> genai.Client:
    if not api_key:
        raise MissingApiKeyError()
    return genai.Client(api_key=api_key)


def _parts(response) -> list:
    candidates = getattr(response, "candidates", None) or []
    if not candidates or candidates[0].content is None:
        return []
    return candidates[0].content.parts or []


def generate_image(prompt: str, api_key: str) -> Dict[str, str]:
    """Returns {"data": "data:image/png;base64,..."} or {"error": message}."""
    client = _client(api_key)
    try:
        response = client.models.generate_content(
            model=IMAGE_MODEL,
            contents=prompt,
        )
    except Exception as e:
        logger.exception("Gemini image generation failed")
        return {"error": str(e) or "Terjadi kesalahan sistem."}

    parts = _parts(response)
    for part in parts:
        if part.inline_data and part.inline_data.data:
            encoded = base64.b64encode(part.inline_data.data).decode("ascii")
            return {"data": f"data:image/png;base64,{encoded}"}

    # No image: a text reply is usually a policy refusal
    for part in parts:
        if part.text:
            return {"error": part.text}
    return {"error": "Gagal menghasilkan gambar."}


def _save_video(content: bytes) -> str:
    os.makedirs(config.MEDIA_DIR, exist_ok=True)
    path = os.path.abspath(os.path.join(config.MEDIA_DIR, f"wali-ai-{uuid4().hex}.mp4"))
    with open(path, "wb") as f:
        f.write(content)
    return "file://" + path


def generate_video(prompt: str, api_key: str, poll_interval: float = VIDEO_POLL_SECONDS) -> str:
    """
    Submit a Veo job, poll until it is done, download the result and return
    a local file:// URL. Polls without a ceiling.
    """
    client = _client(api_key)
    operation = client.models.generate_videos(
        model=VIDEO_MODEL,
        prompt=prompt,
        config=types.GenerateVideosConfig(
            number_of_videos=1,
            resolution='720p',
            aspect_ratio='16:9',
        ),
    )
    while not operation.done:
        time.sleep(poll_interval)
        operation = client.operations.get(operation)

    videos = (operation.response.generated_videos if operation.response else None) or []
    uri = videos[0].video.uri if videos and videos[0].video else None
    if not uri:
        raise AIGatewayError("No video URI returned.")

    resp = requests.get(uri, params={"key": api_key}, timeout=120)
    resp.raise_for_status()
    return _save_video(resp.content)


def generate_teaching_ideas(topic: str, api_key: str) -> str:
    client = _client(api_key)
    try:
        response = client.models.generate_content(
            model=TEXT_MODEL,
            contents=(
                "Buatkan 3 ide aktivitas pembelajaran kreatif dan menyenangkan untuk siswa SMA "
                f'tentang topik: "{topic}". Format output sebagai list markdown yang rapi.'
            ),
        )
    except Exception:
        logger.exception("Gemini text generation failed")
        return "Maaf, terjadi kesalahan koneksi AI."
    return response.text or "Tidak dapat menghasilkan ide saat ini."


def build_document_prompt(params: DocParams) -> str:
    jenjang = params.jenjang or 'SMA/MA'
    return f"""
Bertindaklah sebagai ahli kurikulum pendidikan Indonesia. Buatkan dokumen administrasi guru yang LENGKAP dan PROFESIONAL dengan format HTML (tanpa tag html/body, hanya konten).

Jenis Dokumen: {params.type}
Jenjang: {jenjang}
Kelas: {params.grade}
Mata Pelajaran: {params.subject}
Materi/Topik: {params.topic}
Semester: {params.semester}
Tahun Ajaran: {params.year}
Sekolah: {params.schoolName}

Instruksi Khusus:
1. Gunakan struktur HTML <table> untuk header (kop) agar rapi.
2. Gunakan CSS inline sederhana untuk border tabel (border-collapse, border: 1px solid black) pada bagian isi utama dokumen.
3. Sesuaikan isi dengan regulasi terbaru (Kurikulum Merdeka atau K13 sesuai konteks dokumen) untuk jenjang {jenjang}.
4. Jika "Modul Ajar Deep Learning", tekankan pada pemikiran kritis, kolaborasi, dan refleksi mendalam.
5. Isi harus substantif, jangan hanya placeholder. Buatkan tujuan pembelajaran, langkah-langkah, dan asesmen yang relevan.

PENTING: FORMAT TANDA TANGAN (SIGNATURE BLOCK)
Pada bagian paling bawah dokumen, WAJIB buatkan tabel HTML tanpa border dengan lebar 100% untuk tanda tangan sebagai berikut:
- Kolom Kiri: "Mengetahui,<br/>Kepala Sekolah", spasi untuk tanda tangan, lalu Nama Kepala Sekolah (Tebal) dan NIP.
- Kolom Kanan: "[Titi Mangsa], [Tanggal]<br/>Guru Mata Pelajaran", spasi untuk tanda tangan, lalu Nama Guru (Tebal) dan NIP.

Data Tanda Tangan:
- Titi Mangsa: {params.date}
- Kepala Sekolah: {params.headmaster} (NIP: {params.headmasterNip})
- Guru: {params.teacherName} (NIP: {params.teacherNip})

Output HANYA HTML kontennya saja.
"""


def generate_document(params: DocParams, api_key: str) -> str:
    client = _client(api_key)
    try:
        response = client.models.generate_content(
            model=DOCUMENT_MODEL,
            contents=build_document_prompt(params),
        )
    except Exception as e:
        logger.exception("Gemini document generation failed")
        raise AIGatewayError(str(e) or "Gagal menghubungi layanan AI.") from e
    return response.text or "<p>Gagal menghasilkan dokumen.</p>"
