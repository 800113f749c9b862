import logging
import random
import string
import time
import unicodedata
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union
from uuid import uuid4

import database
from database import TABLES, CURRENT_GURU_KEY
from schemas import (
    User, Guru, Siswa, SiswaIn, SiswaUpdate, Absen, Nilai, DokumenAI,
    GradeField, Session, StatusType,
)

logger = logging.getLogger(__name__)

STATUS_CYCLE: Dict[str, str] = {'H': 'S', 'S': 'I', 'I': 'A', 'A': 'H'}

_B36 = string.digits + string.ascii_lowercase


# Helpers

def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_base36(n: int) -> str:
    out = ""
    while True:
        n, r = divmod(n, 36)
        out = _B36[r] + out
        if n == 0:
            return out


def generate_id() -> str:
    """Millisecond timestamp in base 36 followed by a random suffix."""
    suffix = "".join(random.choices(_B36, k=11))
    return _to_base36(int(time.time() * 1000)) + suffix


def name_sort_key(nama: str) -> str:
    folded = unicodedata.normalize("NFKD", nama)
    return "".join(c for c in folded if not unicodedata.combining(c)).casefold()


# ========== SEED ==========

def seed_initial_data() -> bool:
    """Seed the demo user, guru profile and two students once. Returns True if seeded."""
    if database.db.has_key(TABLES["USERS"]):
        return False
    created_at = now_iso()
    admin_user = User(
        id="u_admin_01",
        nama_lengkap="Nasrudin, S.Pd",
        password="123",
        role="guru",
        created_at=created_at,
    )
    database.save_table(TABLES["USERS"], [admin_user.model_dump()])

    guru_profile = Guru(
        id="g_01",
        user_id="u_admin_01",
        nama_sekolah="SMA Negeri 1 Contoh",
        nip="19850101 201001 1 001",
        kelas_wali="XII IPA 1",
        mapel_ampu="Bahasa Indonesia",
        alamat="Jl. Pendidikan No. 1, Bandung",
        titi_mangsa="Bandung",
        avatar="https://picsum.photos/200/200",
        nama_kepala_sekolah="Dr. H. Kepala Sekolah, M.Pd",
        nip_kepala_sekolah="19700101 199501 1 002",
    )
    database.save_table(TABLES["GURU"], [guru_profile.model_dump()])

    samples = [
        ("s_01", "Ahmad Rizky", "L", "0051234567"),
        ("s_02", "Citra Kirana", "P", "0051234569"),
    ]
    students = [
        Siswa(
            id=sid, guru_id="g_01", kelas="XII IPA 1", tahun_ajaran="2024/2025",
            semester="Genap", nama=nama, jenis_kelamin=jk, nisn=nisn,
            created_at=created_at,
        ).model_dump()
        for sid, nama, jk, nisn in samples
    ]
    database.save_table(TABLES["SISWA"], students)
    logger.info("Seeded demo data (1 user, 1 guru, %d siswa)", len(students))
    return True


# ========== AUTH ==========

def login_user(nama: str, password: str) -> Optional[Session]:
    users = database.get_table(TABLES["USERS"])
    matched_user = next(
        (u for u in users if u.get("nama_lengkap") == nama and u.get("password") == password),
        None,
    )
    if not matched_user:
        return None
    matched_guru = next(
        (g for g in database.get_table(TABLES["GURU"]) if g.get("user_id") == matched_user["id"]),
        None,
    )
    if not matched_guru:
        logger.warning("User %s has no guru profile", matched_user["id"])
        return None

    database.db.set_value(CURRENT_GURU_KEY, matched_guru["id"])
    token = uuid4().hex
    sessions = database.get_table(TABLES["SESSION"])
    sessions.append({
        "token": token,
        "user_id": matched_user["id"],
        "guru_id": matched_guru["id"],
        "created_at": now_iso(),
    })
    database.save_table(TABLES["SESSION"], sessions)
    return Session(token=token, user=User.model_validate(matched_user), guru=Guru.model_validate(matched_guru))


def get_session(token: str) -> Optional[Session]:
    sess = next((s for s in database.get_table(TABLES["SESSION"]) if s.get("token") == token), None)
    if not sess:
        return None
    user = next((u for u in database.get_table(TABLES["USERS"]) if u["id"] == sess["user_id"]), None)
    guru = get_guru_profile(sess["guru_id"])
    if not user or not guru:
        return None
    return Session(token=token, user=User.model_validate(user), guru=guru)


def logout(token: str) -> None:
    sessions = database.get_table(TABLES["SESSION"])
    remaining = [s for s in sessions if s.get("token") != token]
    if len(remaining) != len(sessions):
        database.save_table(TABLES["SESSION"], remaining)


def get_current_guru_id() -> Optional[str]:
    return database.db.get_value(CURRENT_GURU_KEY)


def update_password(user_id: str, new_password: str) -> bool:
    users = database.get_table(TABLES["USERS"])
    for u in users:
        if u["id"] == user_id:
            u["password"] = new_password
            database.save_table(TABLES["USERS"], users)
            return True
    return False


# ========== GURU ==========

def get_guru_profile(guru_id: str) -> Optional[Guru]:
    for g in database.get_table(TABLES["GURU"]):
        if g["id"] == guru_id:
            return Guru.model_validate(g)
    return None


def save_guru_profile(guru: Guru) -> None:
    gurus = database.get_table(TABLES["GURU"])
    doc = guru.model_dump()
    for idx, g in enumerate(gurus):
        if g["id"] == guru.id:
            gurus[idx] = doc
            break
    else:
        gurus.append(doc)
    database.save_table(TABLES["GURU"], gurus)


# ========== SISWA ==========

def list_siswa_by_guru(guru_id: str) -> List[Siswa]:
    items = [Siswa.model_validate(s) for s in database.get_table(TABLES["SISWA"]) if s.get("guru_id") == guru_id]
    return sorted(items, key=lambda s: name_sort_key(s.nama))


def get_siswa(siswa_id: str) -> Optional[Siswa]:
    for s in database.get_table(TABLES["SISWA"]):
        if s["id"] == siswa_id:
            return Siswa.model_validate(s)
    return None


def create_siswa(payload: SiswaIn, guru_id: str) -> Siswa:
    siswa = Siswa(id=generate_id(), guru_id=guru_id, created_at=now_iso(), **payload.model_dump())
    all_siswa = database.get_table(TABLES["SISWA"])
    all_siswa.append(siswa.model_dump())
    database.save_table(TABLES["SISWA"], all_siswa)
    return siswa


def update_siswa(siswa_id: str, payload: SiswaUpdate) -> Optional[Siswa]:
    all_siswa = database.get_table(TABLES["SISWA"])
    for idx, s in enumerate(all_siswa):
        if s["id"] == siswa_id:
            merged = Siswa.model_validate({**s, **payload.model_dump(exclude_unset=True)})
            all_siswa[idx] = merged.model_dump()
            database.save_table(TABLES["SISWA"], all_siswa)
            return merged
    return None


def save_siswa(record: Dict[str, Any], guru_id: str) -> Optional[Siswa]:
    """
    Insert when the record has no id, otherwise merge into the existing
    student. Validation runs before the table is touched. Returns None when
    an id is given that does not exist.
    """
    siswa_id = record.get("id")
    if siswa_id:
        fields = {k: v for k, v in record.items() if k not in ("id", "guru_id", "created_at")}
        return update_siswa(siswa_id, SiswaUpdate.model_validate(fields))
    return create_siswa(SiswaIn.model_validate(record), guru_id)


def delete_siswa(siswa_id: str) -> bool:
    # Absen and Nilai rows for this siswa are left in place.
    all_siswa = database.get_table(TABLES["SISWA"])
    remaining = [s for s in all_siswa if s["id"] != siswa_id]
    if len(remaining) == len(all_siswa):
        return False
    database.save_table(TABLES["SISWA"], remaining)
    return True


# ========== ABSEN ==========

def get_absen_by_bulan(siswa_ids: Iterable[str], bulan: int, tahun: int) -> List[Absen]:
    ids = set(siswa_ids)
    return [
        Absen.model_validate(a)
        for a in database.get_table(TABLES["ABSEN"])
        if a["siswa_id"] in ids and a["bulan"] == bulan and a["tahun"] == tahun
    ]


def get_absen(siswa_id: str, tanggal: str) -> Optional[Absen]:
    for a in database.get_table(TABLES["ABSEN"]):
        if a["siswa_id"] == siswa_id and a["tanggal"] == tanggal:
            return Absen.model_validate(a)
    return None


def upsert_absen(siswa_id: str, tanggal: str, status: StatusType) -> Absen:
    if status not in STATUS_CYCLE:
        raise ValueError(f"Status absen tidak valid: {status!r}")
    tgl = date.fromisoformat(tanggal)
    all_absen = database.get_table(TABLES["ABSEN"])
    for a in all_absen:
        if a["siswa_id"] == siswa_id and a["tanggal"] == tanggal:
            a["status"] = status
            record = a
            break
    else:
        record = Absen(
            id=generate_id(), siswa_id=siswa_id, tanggal=tanggal,
            bulan=tgl.month, tahun=tgl.year, status=status,
        ).model_dump()
        all_absen.append(record)
    database.save_table(TABLES["ABSEN"], all_absen)
    return Absen.model_validate(record)


def next_status(current: Optional[str]) -> str:
    """H -> S -> I -> A -> H. A missing record counts as H."""
    return STATUS_CYCLE[current or 'H']


def cycle_absen(siswa_id: str, tanggal: str) -> Absen:
    existing = get_absen(siswa_id, tanggal)
    return upsert_absen(siswa_id, tanggal, next_status(existing.status if existing else None))


# ========== NILAI ==========

def hitung_raport(harian1: float, harian2: float, harian3: float, mid: float, pas: float) -> float:
    """(rata-rata harian * 40%) + (MID * 30%) + (PAS * 30%), one decimal."""
    avg_harian = (harian1 + harian2 + harian3) / 3
    return round(avg_harian * 0.4 + mid * 0.3 + pas * 0.3, 1)


def get_nilai(siswa_id: str, mapel: str) -> Optional[Nilai]:
    for n in database.get_table(TABLES["NILAI"]):
        if n["siswa_id"] == siswa_id and n["mata_pelajaran"] == mapel:
            return Nilai.model_validate(n)
    return None


def get_nilai_by_mapel(siswa_ids: Iterable[str], mapel: str) -> Dict[str, Nilai]:
    ids = set(siswa_ids)
    return {
        n["siswa_id"]: Nilai.model_validate(n)
        for n in database.get_table(TABLES["NILAI"])
        if n["siswa_id"] in ids and n["mata_pelajaran"] == mapel
    }


def upsert_nilai(siswa_id: str, mapel: str, field: Union[GradeField, str], value: float) -> Nilai:
    # GradeField() rejects 'nilai_raport' and unknown names with ValueError
    field = GradeField(field)
    all_nilai = database.get_table(TABLES["NILAI"])
    record = next(
        (n for n in all_nilai if n["siswa_id"] == siswa_id and n["mata_pelajaran"] == mapel),
        None,
    )
    if record is None:
        record = Nilai(id=generate_id(), siswa_id=siswa_id, mata_pelajaran=mapel).model_dump()
        all_nilai.append(record)

    record[field.value] = float(value)
    record["nilai_raport"] = hitung_raport(
        record["nilai_harian1"], record["nilai_harian2"], record["nilai_harian3"],
        record["nilai_mid"], record["nilai_pas"],
    )
    database.save_table(TABLES["NILAI"], all_nilai)
    return Nilai.model_validate(record)


# ========== DOKUMEN AI ==========

def save_dokumen_ai(guru_id: str, jenis: str, topik: str, html: str) -> DokumenAI:
    doc = DokumenAI(
        id=generate_id(), guru_id=guru_id, jenis_dokumen=jenis,
        topik=topik, isi_html=html, created_at=now_iso(),
    )
    all_docs = database.get_table(TABLES["DOKUMEN"])
    all_docs.append(doc.model_dump())
    database.save_table(TABLES["DOKUMEN"], all_docs)
    return doc


def list_dokumen_ai(guru_id: str) -> List[DokumenAI]:
    return [DokumenAI.model_validate(d) for d in database.get_table(TABLES["DOKUMEN"]) if d["guru_id"] == guru_id]


def get_dokumen_ai(dokumen_id: str) -> Optional[DokumenAI]:
    for d in database.get_table(TABLES["DOKUMEN"]):
        if d["id"] == dokumen_id:
            return DokumenAI.model_validate(d)
    return None
