from django.db import models


class Prospect(models.Model):
    """
    A canvassing target (a merchant account) identified by its social handle.

    The handle is the normalized, lowercase form read off chat screenshots.
    OCR frequently truncates it, so the stored value is only ever lengthened
    by later uploads, never shortened.
    """

    handle = models.CharField(max_length=100, unique=True)

    category = models.CharField(max_length=50, null=True, blank=True)  # umkm_fb, coffee_shop, restoran
    business_type = models.CharField(max_length=100, null=True, blank=True)
    channel = models.CharField(max_length=20, null=True, blank=True)  # instagram, tiktok, facebook, ...
    external_link = models.URLField(null=True, blank=True)
    contact_number = models.CharField(max_length=50, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "prospects"
        ordering = ["handle"]

    def __str__(self):
        return self.handle
