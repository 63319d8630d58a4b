from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='AnalysisRecord',
            fields=[
                ('file_id', models.UUIDField(
                    help_text='Id of the analyzed file in the Content Store',
                    primary_key=True,
                    serialize=False
                )),
                ('file_hash', models.CharField(
                    help_text='SHA-256 hash of the decoded text',
                    max_length=64,
                    unique=True
                )),
                ('paragraph_count', models.PositiveIntegerField()),
                ('word_count', models.PositiveIntegerField()),
                ('character_count', models.PositiveIntegerField()),
                ('artifact_id', models.UUIDField(
                    blank=True,
                    help_text='Id of the word cloud image in the Content Store',
                    null=True
                )),
                ('created_at', models.DateTimeField(
                    auto_now_add=True,
                    help_text='When the analysis was first run'
                )),
            ],
            options={
                'verbose_name': 'Analysis Record',
                'verbose_name_plural': 'Analysis Records',
            },
        ),
    ]
