"""
User-facing error texts (Arabic, as shown by the web client)
"""

INVALID_CREDENTIALS = "البريد الإلكتروني أو كلمة المرور غير صحيحة"
EMAIL_EXISTS = "هذا البريد مسجل مسبقاً"
PASSWORD_TOO_SHORT = "كلمة المرور يجب أن تكون 6 أحرف على الأقل"
NETWORK_ERROR = "خطأ في الاتصال. يرجى المحاولة مرة أخرى"
UNKNOWN_ERROR = "حدث خطأ غير متوقع"
LOGIN_REQUIRED = "يرجى تسجيل الدخول أولاً"
INVALID_RESET_TOKEN = "رابط إعادة التعيين غير صالح أو منتهي الصلاحية"
RESET_EMAIL_SENT = "إذا كان البريد مسجلاً، ستصلك رسالة لإعادة تعيين كلمة المرور"

INVALID_NAME = "الرجاء إدخال اسم صحيح (حرفين على الأقل)"
INVALID_COUPON = "كود غير صالح"
ALREADY_PURCHASED = "لقد اشتريت الدورة مسبقاً"
PAYMENT_SESSION_FAILED = "تعذر إنشاء جلسة الدفع، يرجى المحاولة مرة أخرى"
PAYMENT_CANCELLED = "تم إلغاء عملية الدفع"
PAYMENT_FAILED = "فشلت عملية الدفع، يرجى المحاولة مرة أخرى"
PURCHASE_NOT_FOUND = "لم نتمكن من التحقق من عملية الشراء"

LESSON_LOCKED = "هذا الدرس مقفل. اشترك للوصول لجميع الدروس"
LESSON_NOT_FOUND = "الدرس غير موجود"

COMMUNITY_ACCESS_REQUIRED = "اشترك في المجتمع للوصول إلى هذا المحتوى"
TRIAL_ALREADY_USED = "لقد استخدمت الفترة التجريبية مسبقاً"
ADMIN_ONLY = "هذا الإجراء متاح للمشرفين فقط"
CANNOT_DEMOTE_SELF = "لا يمكنك إزالة صلاحياتك الخاصة"
POST_NOT_FOUND = "المنشور غير موجود"
POST_LOCKED = "المنشور مغلق للتعليقات"
COMMENT_NOT_FOUND = "التعليق غير موجود"
NOT_AUTHOR = "غير مصرح لك بتنفيذ هذا الإجراء"
EVENT_NOT_FOUND = "الفعالية غير موجودة"
EVENT_FULL = "الفعالية مكتملة العدد"
ALREADY_REGISTERED = "أنت مسجل مسبقاً في هذه الفعالية"
NOT_REGISTERED = "أنت غير مسجل في هذه الفعالية"
REGISTERED = "تم التسجيل بنجاح"
UNREGISTERED = "تم إلغاء التسجيل"
FILE_NOT_FOUND = "الملف غير موجود"
FILE_TOO_LARGE = "حجم الملف أكبر من المسموح"
USER_NOT_FOUND = "المستخدم غير موجود"
UNKNOWN_USER_NAME = "غير معروف"
