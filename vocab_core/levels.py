# vocab_core/levels.py

"""
Bảng ngưỡng quy đổi tổng số từ dự đoán sang các thang cấp độ.

Mỗi bảng là danh sách (ngưỡng, nhãn) tăng dần; nhãn được chọn là nhãn
có ngưỡng lớn nhất không vượt quá điểm.
"""

from bisect import bisect_right
from typing import Dict, Optional, Sequence, Tuple

from .schema import AnalysisReport, LearnerType

LevelTable = Sequence[Tuple[int, str]]


JLPT_TABLE: LevelTable = [
    (0, "Dưới N5"),
    (800, "N5"),
    (1500, "N4"),
    (3700, "N3"),
    (6000, "N2"),
    (10000, "N1"),
    (18000, "Trên N1"),
]

CEFR_TABLE: LevelTable = [
    (0, "Pre-A1"),
    (500, "A1"),
    (1000, "A2"),
    (2500, "B1"),
    (5000, "B2"),
    (9000, "C1"),
    (15000, "C2"),
]

AGE_TABLE: LevelTable = [
    (0, "Dưới 3 tuổi (trước mẫu giáo)"),
    (1500, "4-5 tuổi (mẫu giáo)"),
    (4000, "6-7 tuổi (tiểu học lớp 1-2)"),
    (8000, "8-10 tuổi (tiểu học lớp 3-4)"),
    (13000, "11-12 tuổi (tiểu học lớp 5-6)"),
    (20000, "13-15 tuổi (trung học cơ sở)"),
    (28000, "16-18 tuổi (trung học phổ thông)"),
    (38000, "Người trưởng thành (trình độ đại học)"),
    (50000, "Chuyên gia ngôn ngữ (biên tập viên, nhà văn)"),
]

# ===== Mô tả năng lực đọc, tách theo kiểu người học =====
LITERACY_DEFAULT: LevelTable = [
    (0, "Mới làm quen: nhận ra chào hỏi, con số và vài từ quen thuộc."),
    (1500, "Đọc được biển báo, thực đơn và tin nhắn ngắn đơn giản."),
    (4000, "Theo dõi được hội thoại thường ngày và bài viết ngắn có furigana."),
    (8000, "Đọc được blog, truyện tranh và tin tức đơn giản với ít tra cứu."),
    (15000, "Đọc báo, tiểu thuyết phổ thông một cách độc lập."),
    (25000, "Đọc thoải mái văn bản chuyên ngành và văn học hiện đại."),
    (40000, "Vốn từ ngang người bản xứ có học vấn cao."),
]

LITERACY_ACADEMIC: LevelTable = [
    (0, "Nền tảng sách vở đang hình thành: nắm từ giáo trình nhập môn."),
    (1500, "Vững từ giáo trình sơ cấp, cần thêm tiếp xúc với tiếng Nhật thực tế."),
    (4000, "Đọc tốt văn bản học thuật có cấu trúc, còn lạ với khẩu ngữ và tiếng lóng."),
    (8000, "Xử lý được đề thi và văn bản hành chính; văn hóa đại chúng còn nhiều khoảng trống."),
    (15000, "Đọc văn bản trang trọng gần như người bản xứ, nên mở rộng sang giải trí, mạng xã hội."),
    (25000, "Vốn từ học thuật rộng, phù hợp nghiên cứu và biên dịch chuyên ngành."),
    (40000, "Trình độ học giả: bao quát cả văn ngôn lẫn thuật ngữ hiếm."),
]

LITERACY_IMMERSION: LevelTable = [
    (0, "Quen tai nhiều hơn quen mắt: nhận ra từ nghe được qua phim, nhạc."),
    (1500, "Hiểu từ đời thường qua tiếp xúc, nền tảng ngữ pháp sách vở còn mỏng."),
    (4000, "Đọc được truyện tranh, mạng xã hội; văn bản trang trọng còn vấp."),
    (8000, "Vốn từ đời sống phong phú, nên bổ sung từ Hán-Nhật trang trọng."),
    (15000, "Đọc tự nhiên như người bản xứ trong đa số ngữ cảnh giải trí và tin tức."),
    (25000, "Vốn từ văn hóa rất sâu, chạm tới cả từ ngữ văn chương."),
    (40000, "Hòa nhập hoàn toàn: vốn từ ngang người bản xứ đọc nhiều."),
]

LITERACY_TABLES: Dict[LearnerType, LevelTable] = {
    LearnerType.ACADEMIC: LITERACY_ACADEMIC,
    LearnerType.IMMERSION: LITERACY_IMMERSION,
}


def lookup_level(score: int, table: LevelTable) -> str:
    """Nhãn có ngưỡng lớn nhất <= score (dưới ngưỡng đầu thì lấy nhãn đầu)."""
    if not table:
        return ""
    thresholds = [t for t, _ in table]
    idx = bisect_right(thresholds, score) - 1
    return table[max(0, idx)][1]


def literacy_table_for(learner_type: LearnerType) -> LevelTable:
    return LITERACY_TABLES.get(learner_type, LITERACY_DEFAULT)


def map_levels(score: int, learner_type: LearnerType) -> Dict[str, str]:
    return {
        "jlpt_level": lookup_level(score, JLPT_TABLE),
        "cefr_level": lookup_level(score, CEFR_TABLE),
        "age_equivalent": lookup_level(score, AGE_TABLE),
        "literacy_description": lookup_level(score, literacy_table_for(learner_type)),
    }


# ============================
# Báo cáo phân tích chi tiết
# ============================

def build_analysis_report(score: int, band1_ratio: Optional[float]) -> AnalysisReport:
    """
    Nhận xét theo mức điểm và cảnh báo "kiến thức lỗ chỗ" khi band 1
    (từ cơ bản nhất) yếu dù tổng điểm khá.
    """
    if score < 1500:
        summary = "Bạn đang ở giai đoạn đầu. Trọng tâm hiện tại là nhận diện mặt chữ và các ký tự cơ bản."
        practical = "Nhận ra được lời chào và con số, nhưng văn bản dài vẫn còn khó."
        advice = "Ưu tiên: thuộc hoàn toàn Hiragana, Katakana và khoảng 100 chữ Hán cơ bản."
    elif score < 8000:
        summary = "Bạn ở trình độ trung cấp: đã qua giai đoạn nhập môn nhưng chưa đọc trôi chảy văn bản phức tạp."
        practical = "Hiểu được tin nhắn hằng ngày, còn tin tức tiêu chuẩn vẫn nặng."
        advice = "Tăng cường đọc rộng không tra từ điển (extensive reading) và củng cố jukugo."
    else:
        summary = "Năng lực đọc của bạn vững, đã có thể xem là người đọc độc lập."
        practical = "Hầu hết phương tiện giải trí đều đã mở ra với bạn."
        advice = "Thử sức với tài liệu kỹ thuật, văn học hoặc bài xã luận trên báo."

    warning = ""
    if band1_ratio is not None and band1_ratio < 0.7 and score > 3000:
        warning = (
            "LƯU Ý: Tổng điểm khá nhưng độ chính xác ở nhóm từ cơ bản (Band 1) chưa ổn định. "
            "Đây là dấu hiệu kiến thức lỗ chỗ; đừng xem nhẹ từ cơ bản vì chúng tạo nên khung câu."
        )

    return AnalysisReport(summary=summary, practical=practical, advice=advice, warning=warning)
