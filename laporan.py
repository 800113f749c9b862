import html
from typing import Dict, Iterable, List, Optional, Tuple

from schemas import Absen, Nilai, Siswa

WORD_MIME_TYPE = "application/msword"

NILAI_CSV_HEADER = "Nama,Jenis Kelamin,Nilai Harian 1,Nilai Harian 2,Nilai Harian 3,MID,PAS,RAPORT"


def _num(value: float) -> str:
    return f"{value:g}"


def export_nilai_csv(siswa_list: Iterable[Siswa], nilai_map: Dict[str, Nilai]) -> str:
    """Header row plus one row per student; students without a grade get zeros."""
    lines = [NILAI_CSV_HEADER]
    for s in siswa_list:
        n = nilai_map.get(s.id)
        scores = (
            [n.nilai_harian1, n.nilai_harian2, n.nilai_harian3, n.nilai_mid, n.nilai_pas, n.nilai_raport]
            if n else [0] * 6
        )
        nama = s.nama.replace('"', '""')
        lines.append(f'"{nama}",{s.jenis_kelamin},' + ",".join(_num(v) for v in scores))
    return "\n".join(lines) + "\n"


def rekap_bulanan(records: Iterable[Absen], siswa_id: str) -> Dict[str, int]:
    """Counts of S/I/A for one student. Days without a record are H and are not counted."""
    rekap = {"S": 0, "I": 0, "A": 0}
    for r in records:
        if r.siswa_id == siswa_id and r.status in rekap:
            rekap[r.status] += 1
    return rekap


def rekap_kelas(siswa_list: Iterable[Siswa], records: List[Absen]) -> List[Dict[str, object]]:
    result = []
    for s in siswa_list:
        rekap = rekap_bulanan(records, s.id)
        result.append({"siswa_id": s.id, "nama": s.nama, **rekap})
    return result


def wrap_document_header(school_name: str, jenis: str, body_html: str, logo: Optional[str] = None) -> str:
    """Kop dokumen: optional logo, school name and document type above the generated body."""
    out = ""
    if logo:
        out += (f'<div style="text-align: center; margin-bottom: 20px;">'
                f'<img src="{html.escape(logo, quote=True)}" width="100" height="auto" alt="Logo Sekolah" /></div>')
    out += (f'<h2 style="text-align:center; text-transform:uppercase; margin-bottom:5px;">'
            f'{html.escape(school_name)}</h2>')
    out += (f'<p style="text-align:center; font-weight:bold; border-bottom: 3px double black; '
            f'padding-bottom: 10px; margin-bottom: 20px;">{html.escape(jenis.upper())}</p>')
    return out + body_html


def _safe_filename(text: str) -> str:
    return "".join(c for c in text if c not in '\\/:*?"<>|').strip()


def export_dokumen_word(jenis: str, topik: str, body_html: str) -> Tuple[str, bytes]:
    """Return (filename, content) of a .doc that Word opens as HTML."""
    pre = (
        "<html xmlns:o='urn:schemas-microsoft-com:office:office' "
        "xmlns:w='urn:schemas-microsoft-com:office:word' "
        "xmlns='http://www.w3.org/TR/REC-html40'>"
        f"<head><meta charset='utf-8'><title>{html.escape(jenis)}</title>"
        "<style>body{font-family:'Times New Roman',serif;font-size:12pt}"
        "table{width:100%;border-collapse:collapse}"
        "td,th{padding:5px;border:1px solid black}</style>"
        "</head><body>"
    )
    full = "\ufeff" + pre + body_html + "</body></html>"
    filename = _safe_filename(f"{jenis} - {topik}") + ".doc"
    return filename, full.encode("utf-8")
