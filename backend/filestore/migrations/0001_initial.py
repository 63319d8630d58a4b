from django.db import migrations, models
import filestore.models
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='StoredFile',
            fields=[
                ('id', models.UUIDField(
                    default=uuid.uuid4,
                    editable=False,
                    primary_key=True,
                    serialize=False
                )),
                ('name', models.CharField(
                    help_text='Original filename as uploaded by the client',
                    max_length=255
                )),
                ('content_hash', models.CharField(
                    help_text='MD5 hash of file content',
                    max_length=32,
                    unique=True
                )),
                ('file', models.FileField(
                    help_text='Path to physical file in content-addressable storage',
                    max_length=255,
                    upload_to=filestore.models.content_addressable_path
                )),
                ('size', models.BigIntegerField(
                    help_text='File size in bytes'
                )),
                ('created_at', models.DateTimeField(
                    auto_now_add=True,
                    help_text='When this content was first stored'
                )),
            ],
            options={
                'verbose_name': 'Stored File',
                'verbose_name_plural': 'Stored Files',
            },
        ),
    ]
