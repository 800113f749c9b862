import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional, Dict, Any
from urllib.parse import quote

from fastapi import FastAPI, HTTPException, Query, Header, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError, model_validator

import ai_gateway
import config
import crud
import database
import kalender
import laporan
from schemas import (
    Guru, GuruIn, Siswa, SiswaIn, SiswaUpdate, Absen, Nilai, DokumenAI, DocParams,
    GradeField, Session, StatusType,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if crud.seed_initial_data():
        logger.info("Demo data seeded on first start")
    yield


app = FastAPI(title="Wali Kelas - Administrasi Guru Wali Kelas", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(database.CorruptTableError)
def corrupt_table_handler(request: Request, exc: database.CorruptTableError):
    logger.error("Corrupt table %s: %s", exc.key, exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


# Helpers

def require_guru(authorization: Optional[str] = Header(None)) -> Session:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")
    token = authorization.split(" ", 1)[1].strip()
    sess = crud.get_session(token)
    if not sess:
        raise HTTPException(status_code=401, detail="Session invalid")
    return sess


def require_api_key(x_api_key: Optional[str]) -> str:
    key = x_api_key or config.GEMINI_API_KEY
    if not key:
        raise HTTPException(status_code=400, detail="API Key diperlukan.")
    return key


def own_siswa(sess: Session, siswa_id: str) -> Siswa:
    siswa = crud.get_siswa(siswa_id)
    if not siswa or siswa.guru_id != sess.guru_id:
        raise HTTPException(status_code=404, detail="Siswa tidak ditemukan")
    return siswa


def parse_tanggal(tanggal: str) -> date:
    try:
        return date.fromisoformat(tanggal)
    except ValueError:
        raise HTTPException(status_code=400, detail="Format tanggal tidak valid (YYYY-MM-DD)")


# Pydantic models for requests/responses
class LoginIn(BaseModel):
    nama_lengkap: str
    password: str


class LoginOut(BaseModel):
    token: str
    user_id: str
    nama_lengkap: str
    guru: Guru


class PasswordIn(BaseModel):
    password_baru: str = Field(..., min_length=4)
    konfirmasi: str

    @model_validator(mode="after")
    def check_konfirmasi(self):
        if self.password_baru != self.konfirmasi:
            raise ValueError("Konfirmasi kata sandi tidak cocok.")
        return self


class AbsenIn(BaseModel):
    siswa_id: str
    tanggal: str = Field(..., description="YYYY-MM-DD")
    status: StatusType


class AbsenCycleIn(BaseModel):
    siswa_id: str
    tanggal: str


class NilaiIn(BaseModel):
    siswa_id: str
    mata_pelajaran: str
    field: GradeField
    value: float


class PromptIn(BaseModel):
    prompt: str = Field(..., min_length=1)


class TopicIn(BaseModel):
    topic: str = Field(..., min_length=1)


class DokumenIn(DocParams):
    logo: Optional[str] = None


class KalenderOut(BaseModel):
    tanggal: str
    hari: str
    pasaran: str
    hijri: kalender.HijriDate
    holiday: Optional[kalender.Holiday] = None
    rukyat: Optional[str] = None


# Root & health
@app.get("/")
def read_root():
    return {"message": "Wali Kelas Backend running"}


@app.get("/test")
def test_database():
    """Check that the record store is reachable and list table sizes."""
    response: Dict[str, Any] = {
        "backend": "✅ Running",
        "store": type(database.db).__name__,
        "tables": {},
    }
    try:
        for key in database.TABLES.values():
            response["tables"][key] = len(database.get_table(key))
        response["database"] = "✅ Connected & Working"
    except database.CorruptTableError as e:
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response


# ========== AUTH ==========
@app.post("/api/seed-demo")
def seed_demo():
    """Idempotent: seed the demo guru and students if the store is empty"""
    created = crud.seed_initial_data()
    return {"status": "ok", "seeded": created}


@app.post("/api/login", response_model=LoginOut)
def login(payload: LoginIn):
    sess = crud.login_user(payload.nama_lengkap, payload.password)
    if not sess:
        raise HTTPException(status_code=401, detail="Nama atau password salah")
    return {"token": sess.token, "user_id": sess.user.id, "nama_lengkap": sess.user.nama_lengkap, "guru": sess.guru}


@app.post("/api/logout")
def logout(authorization: Optional[str] = Header(None)):
    if authorization and authorization.lower().startswith("bearer "):
        crud.logout(authorization.split(" ", 1)[1].strip())
    return {"status": "ok"}


@app.put("/api/password")
def change_password(payload: PasswordIn, authorization: Optional[str] = Header(None)):
    sess = require_guru(authorization)
    if not crud.update_password(sess.user.id, payload.password_baru):
        raise HTTPException(status_code=404, detail="User tidak ditemukan")
    return {"status": "ok", "message": "Password berhasil diubah"}


# ========== GURU ==========
@app.get("/api/guru/profile", response_model=Guru)
def get_profile(authorization: Optional[str] = Header(None)):
    sess = require_guru(authorization)
    return crud.get_guru_profile(sess.guru_id) or sess.guru


@app.put("/api/guru/profile", response_model=Guru)
def update_profile(payload: GuruIn, authorization: Optional[str] = Header(None)):
    sess = require_guru(authorization)
    guru = Guru(id=sess.guru_id, user_id=sess.user.id, **payload.model_dump())
    crud.save_guru_profile(guru)
    return guru


# ========== SISWA CRUD ==========
@app.get("/api/siswa", response_model=List[Siswa])
def list_siswa(q: Optional[str] = None, authorization: Optional[str] = Header(None)):
    sess = require_guru(authorization)
    items = crud.list_siswa_by_guru(sess.guru_id)
    if q:
        items = [s for s in items if q.lower() in s.nama.lower() or (s.nisn and q in s.nisn)]
    return items


@app.post("/api/siswa", response_model=Siswa)
def create_siswa(payload: SiswaIn, authorization: Optional[str] = Header(None)):
    sess = require_guru(authorization)
    return crud.create_siswa(payload, sess.guru_id)


@app.put("/api/siswa/{siswa_id}", response_model=Siswa)
def update_siswa(siswa_id: str, payload: SiswaUpdate, authorization: Optional[str] = Header(None)):
    sess = require_guru(authorization)
    own_siswa(sess, siswa_id)
    try:
        siswa = crud.update_siswa(siswa_id, payload)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    if not siswa:
        raise HTTPException(status_code=404, detail="Siswa tidak ditemukan")
    return siswa


@app.delete("/api/siswa/{siswa_id}")
def delete_siswa(siswa_id: str, authorization: Optional[str] = Header(None)):
    sess = require_guru(authorization)
    own_siswa(sess, siswa_id)
    crud.delete_siswa(siswa_id)
    return {"status": "ok"}


# ========== ABSENSI ==========
@app.get("/api/absen", response_model=List[Absen])
def list_absen(
    bulan: int = Query(..., ge=1, le=12),
    tahun: int = Query(...),
    authorization: Optional[str] = Header(None),
):
    sess = require_guru(authorization)
    ids = [s.id for s in crud.list_siswa_by_guru(sess.guru_id)]
    return crud.get_absen_by_bulan(ids, bulan, tahun)


@app.put("/api/absen", response_model=Absen)
def set_absen(payload: AbsenIn, authorization: Optional[str] = Header(None)):
    sess = require_guru(authorization)
    own_siswa(sess, payload.siswa_id)
    parse_tanggal(payload.tanggal)
    return crud.upsert_absen(payload.siswa_id, payload.tanggal, payload.status)


@app.post("/api/absen/cycle", response_model=Absen)
def cycle_absen(payload: AbsenCycleIn, authorization: Optional[str] = Header(None)):
    sess = require_guru(authorization)
    own_siswa(sess, payload.siswa_id)
    parse_tanggal(payload.tanggal)
    return crud.cycle_absen(payload.siswa_id, payload.tanggal)


@app.get("/api/absen/rekap")
def rekap_absen(
    bulan: int = Query(..., ge=1, le=12),
    tahun: int = Query(...),
    authorization: Optional[str] = Header(None),
):
    sess = require_guru(authorization)
    siswa_list = crud.list_siswa_by_guru(sess.guru_id)
    records = crud.get_absen_by_bulan([s.id for s in siswa_list], bulan, tahun)
    return {"bulan": bulan, "tahun": tahun, "data": laporan.rekap_kelas(siswa_list, records)}


# ========== NILAI ==========
@app.get("/api/nilai", response_model=List[Nilai])
def list_nilai(mapel: str = Query(...), authorization: Optional[str] = Header(None)):
    sess = require_guru(authorization)
    ids = [s.id for s in crud.list_siswa_by_guru(sess.guru_id)]
    return list(crud.get_nilai_by_mapel(ids, mapel).values())


@app.put("/api/nilai", response_model=Nilai)
def set_nilai(payload: NilaiIn, authorization: Optional[str] = Header(None)):
    sess = require_guru(authorization)
    own_siswa(sess, payload.siswa_id)
    return crud.upsert_nilai(payload.siswa_id, payload.mata_pelajaran, payload.field, payload.value)


@app.get("/api/nilai/csv")
def export_nilai(mapel: str = Query(...), authorization: Optional[str] = Header(None)):
    sess = require_guru(authorization)
    siswa_list = crud.list_siswa_by_guru(sess.guru_id)
    nilai_map = crud.get_nilai_by_mapel([s.id for s in siswa_list], mapel)
    return Response(content=laporan.export_nilai_csv(siswa_list, nilai_map), media_type="text/csv")


# ========== KALENDER ==========
@app.get("/api/kalender/bulan")
def kalender_bulan(tahun: int = Query(...), bulan: int = Query(..., ge=1, le=12)):
    try:
        hijri = kalender.hijri_date(date(tahun, bulan, 1))
        days = kalender.month_calendar(tahun, bulan)
    except (ValueError, OverflowError):
        raise HTTPException(status_code=400, detail="Tanggal di luar rentang kalender Hijriah")
    return {
        "tahun": tahun,
        "bulan": kalender.MONTHS_ID[bulan - 1],
        "rukyat": kalender.rukyat_info(hijri.month),
        "days": days,
    }


@app.get("/api/kalender/{tanggal}", response_model=KalenderOut)
def kalender_hari(tanggal: str):
    d = parse_tanggal(tanggal)
    try:
        hijri = kalender.hijri_date(d)
    except OverflowError:
        raise HTTPException(status_code=400, detail="Tanggal di luar rentang kalender Hijriah")
    return {
        "tanggal": d.isoformat(),
        "hari": kalender.day_name(d),
        "pasaran": kalender.javanese_pasaran(d),
        "hijri": hijri,
        "holiday": kalender.holiday_lookup(d),
        "rukyat": kalender.rukyat_info(hijri.month),
    }


# ========== AI STUDIO ==========
@app.post("/api/ai/image")
def ai_image(payload: PromptIn, x_api_key: Optional[str] = Header(None)):
    key = require_api_key(x_api_key)
    return ai_gateway.generate_image(payload.prompt, key)


@app.post("/api/ai/video")
def ai_video(payload: PromptIn, x_api_key: Optional[str] = Header(None)):
    key = require_api_key(x_api_key)
    try:
        url = ai_gateway.generate_video(payload.prompt, key)
    except Exception as e:
        logger.exception("Veo video generation failed")
        raise HTTPException(status_code=502, detail=str(e))
    return {"url": url}


@app.post("/api/ai/ide")
def ai_ideas(payload: TopicIn, x_api_key: Optional[str] = Header(None)):
    key = require_api_key(x_api_key)
    return {"text": ai_gateway.generate_teaching_ideas(payload.topic, key)}


@app.post("/api/ai/dokumen", response_model=DokumenAI)
def ai_dokumen(
    payload: DokumenIn,
    authorization: Optional[str] = Header(None),
    x_api_key: Optional[str] = Header(None),
):
    sess = require_guru(authorization)
    key = require_api_key(x_api_key)
    try:
        body = ai_gateway.generate_document(payload, key)
    except ai_gateway.AIGatewayError as e:
        raise HTTPException(status_code=502, detail=f"Error: {e}")
    final_html = laporan.wrap_document_header(payload.schoolName, payload.type, body, logo=payload.logo)
    return crud.save_dokumen_ai(sess.guru_id, payload.type, payload.topic, final_html)


@app.get("/api/dokumen", response_model=List[DokumenAI])
def list_dokumen(authorization: Optional[str] = Header(None)):
    sess = require_guru(authorization)
    return crud.list_dokumen_ai(sess.guru_id)


@app.get("/api/dokumen/{dokumen_id}/word")
def download_dokumen(dokumen_id: str, authorization: Optional[str] = Header(None)):
    sess = require_guru(authorization)
    doc = crud.get_dokumen_ai(dokumen_id)
    if not doc or doc.guru_id != sess.guru_id:
        raise HTTPException(status_code=404, detail="Dokumen tidak ditemukan")
    filename, content = laporan.export_dokumen_word(doc.jenis_dokumen, doc.topik, doc.isi_html)
    return Response(
        content=content,
        media_type=laporan.WORD_MIME_TYPE,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
