from django.contrib import admin

from .models import Conversation, Message


class MessageInline(admin.TabularInline):
    model = Message
    extra = 0
    fields = ("sender", "content", "is_read", "read_at", "created_at")
    readonly_fields = ("sender", "content", "created_at")


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ("__str__", "classroom", "student_name", "last_message_date", "created_at")
    list_filter = ("classroom",)
    search_fields = ("participant_key", "student_name", "last_message")
    readonly_fields = ("participant_key", "unread_counts", "created_at")
    inlines = [MessageInline]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ("sender_name", "conversation", "is_read", "created_at")
    list_filter = ("is_read",)
    search_fields = ("sender_name", "content")
    raw_id_fields = ("conversation", "sender")
